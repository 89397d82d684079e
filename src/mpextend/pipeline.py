"""Installer pipeline — merge many contributors into one host definition.

    definition = Extender().build(options)
    instance = host.Component(definition).create()

Stages, each run over the installers in order:

1. install(extender, context, options)             -> merged artifacts in the Context
2. definition_filter(extender, context, options,
                     def_fields)                     -> host behaviors on the definition
3. ready / moved hook aggregation                   -> call-all chains on the definition

Composition is best-effort: a missing or non-callable member is skipped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from mpextend.context import Context

logger = logging.getLogger("mpextend.pipeline")


def member(installer, name: str) -> Callable | None:
    """installer.<name> if it is callable, else None."""
    fn = getattr(installer, name, None)
    if fn is None:
        return None
    if not callable(fn):
        logger.debug("Dropping non-callable %s from %r", name, installer)
        return None
    return fn


def chain(fns: Iterable[Callable | None]) -> Callable[..., None]:
    """Call every callable in fns, in order, with the same arguments."""
    calls = [fn for fn in fns if callable(fn)]

    def _call_all(*args, **kwargs) -> None:
        for fn in calls:
            fn(*args, **kwargs)

    return _call_all


def merge_maps(maps: Iterable[dict | None]) -> dict:
    """Left-fold override: later maps win key by key."""
    merged: dict = {}
    for m in maps:
        if m:
            merged.update(m)
    return merged


def default_installers() -> list:
    from mpextend.computed import ComputedInstaller
    from mpextend.lifecycle import LifeCycleInstaller
    from mpextend.runtime import ContextInstaller
    from mpextend.state import StateInstaller
    from mpextend.update import UpdateInstaller
    from mpextend.watcher import WatcherInstaller

    return [
        StateInstaller(),
        LifeCycleInstaller(),
        WatcherInstaller(),
        ComputedInstaller(),
        UpdateInstaller(),
        ContextInstaller(),
    ]


class Extender:
    """Runs an ordered list of installers over a component's options."""

    def __init__(self, installers: Iterable | None = None) -> None:
        self.installers = list(installers) if installers is not None else default_installers()

    def fragments(self, name: str, *args) -> list:
        """Non-empty results of installer.<name>(*args) across installers, in order."""
        results = []
        for installer in self.installers:
            fn = member(installer, name)
            if fn is None:
                continue
            value = fn(*args)
            if value:
                results.append(value)
        return results

    def hooks(self, name: str) -> list[Callable]:
        """Callable installer.<name> attributes, in order."""
        return [fn for fn in (member(i, name) for i in self.installers) if fn is not None]

    def build(self, options: dict | None = None) -> dict[str, Any]:
        options = dict(options or {})
        context = Context()
        def_fields: dict[str, Any] = {"behaviors": []}

        for installer in self.installers:
            install = member(installer, "install")
            if install is not None:
                install(self, context, options)

        for installer in self.installers:
            definition_filter = member(installer, "definition_filter")
            if definition_filter is not None:
                definition_filter(self, context, options, def_fields)

        self._aggregate(context, options, def_fields)

        logger.debug(
            "Built definition from %d installers: %d behaviors, context keys %s",
            len(self.installers), len(def_fields["behaviors"]), context.keys(),
        )
        return def_fields

    def _aggregate(self, context: Context, options: dict, def_fields: dict) -> None:
        from mpextend.runtime import context_of

        for name in ("ready", "moved"):
            calls = self.hooks(name) + [fn for fn in (options.get(name),) if callable(fn)]
            if not calls:
                continue
            run = chain(calls)
            def_fields[name] = lambda instance, _run=run: _run(context_of(instance))


def component(options: dict | None = None, installers: Iterable | None = None) -> dict[str, Any]:
    """Build a host definition from options with the given (or default) installers."""
    return Extender(installers).build(options)
