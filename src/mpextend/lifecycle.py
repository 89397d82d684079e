"""LifeCycleInstaller — two hook vocabularies onto one host lifecycle.

    source hook      host phase
    before_create    definition-level before_create, on the bare instance
    created          created    (before external overrides are applied)
    before_mount     created    (second sub-chain)
    mounted          attached   (after overrides)
    before_destroy   detached
    destroyed        detached   (after before_destroy)

Every host phase runs two tiers, each in install order:

1. native hooks: each installer's lifetimes() fragment, then its
   created/attached/detached attribute; options["lifetimes"] last
2. the translated chain: installers' source-vocabulary hooks, then the
   matching options hook

Page lifetimes (show, hide, resize) chain installers' page_lifetimes()
fragments and options["page_lifetimes"].
"""

from __future__ import annotations

from mpextend.host import LIFETIMES, PAGE_LIFETIMES, Behavior
from mpextend.installer import Installer
from mpextend.pipeline import chain, member
from mpextend.runtime import context_of

SOURCE_HOOKS = ("before_create", "created", "before_mount", "mounted", "before_destroy", "destroyed")

# host phase -> source hooks run in it, in order
TRANSLATION = {
    "created": ("created", "before_mount"),
    "attached": ("mounted",),
    "detached": ("before_destroy", "destroyed"),
}


def _with_context(run):
    return lambda instance, *args: run(context_of(instance), *args)


class LifeCycleInstaller(Installer):
    def _native_chains(self, extender, context, options) -> dict:
        chains = {name: [] for name in LIFETIMES}
        for installer in extender.installers:
            provider = member(installer, "lifetimes")
            fragment = (provider(extender, context, options) if provider else None) or {}
            for name in LIFETIMES:
                chains[name].append(fragment.get(name))
                chains[name].append(member(installer, name))
        option_lifetimes = options.get("lifetimes") or {}
        for name in LIFETIMES:
            chains[name].append(option_lifetimes.get(name))
        return {name: chain(fns) for name, fns in chains.items()}

    def _page_chains(self, extender, context, options) -> dict:
        fragments = extender.fragments("page_lifetimes", extender, context, options)
        fragments.append(options.get("page_lifetimes") or {})
        return {name: chain(f.get(name) for f in fragments) for name in PAGE_LIFETIMES}

    def _source_chains(self, extender, options) -> dict:
        chains = {}
        for name in SOURCE_HOOKS:
            # installers' `created` is a host hook and already runs in tier 1
            installer_hooks = [] if name in LIFETIMES else extender.hooks(name)
            chains[name] = chain([*installer_hooks, options.get(name)])
        return chains

    def install(self, extender, context, options) -> None:
        context.set("lifetimes", self._native_chains(extender, context, options))
        context.set("page_lifetimes", self._page_chains(extender, context, options))
        context.set("source_hooks", self._source_chains(extender, options))

    def definition_filter(self, extender, context, options, def_fields) -> None:
        native = context.get("lifetimes")
        page = context.get("page_lifetimes")
        source = context.get("source_hooks")

        def_fields["behaviors"].append(
            Behavior(
                lifetimes={name: _with_context(run) for name, run in native.items()},
                page_lifetimes={name: _with_context(run) for name, run in page.items()},
            )
        )

        translated = {}
        for phase, hooks in TRANSLATION.items():
            translated[phase] = _with_context(chain(source[name] for name in hooks))
        def_fields["behaviors"].append(Behavior(lifetimes=translated))

        before_create = source["before_create"]
        previous = def_fields.get("before_create")
        def_fields["before_create"] = chain([previous, before_create])
