"""UpdateInstaller — intercepts the host commit primitive.

For the lifetime of an instance (created .. detached) its set_data is
replaced by a wrapper that runs, for every commit:

    options before_update(vm)        writes join the payload
    installers' before_update chain  computed setters, then recompute
    native set_data                  host applies payload, fires observers
    installers' updated chain
    options updated(vm)
    caller's callback

The before-update part runs inside a commit cycle so that writes made
through the runtime context are collected into the same payload. The
caller's payload dict is copied, never mutated. At detached the native
set_data is put back and the stored reference dropped.
"""

from __future__ import annotations

import logging

from mpextend import _anchor
from mpextend._tracking import commit_cycle
from mpextend.host import Behavior, dispatch
from mpextend.installer import Installer
from mpextend.pipeline import chain
from mpextend.runtime import context_of

logger = logging.getLogger("mpextend.update")


class UpdateInstaller(Installer):
    def install(self, extender, context, options) -> None:
        context.set("before_update", chain(extender.hooks("before_update")))
        context.set("updated", chain(extender.hooks("updated")))

    def definition_filter(self, extender, context, options, def_fields) -> None:
        before_update = context.get("before_update")
        updated = context.get("updated")
        before_update_hook = options.get("before_update")
        updated_hook = options.get("updated")

        def created(instance):
            native = instance.set_data
            _anchor.native_commits[id(instance)] = native

            def set_data(payload, callback=None):
                dispatch(lambda: _commit(dict(payload), callback))

            def _commit(payload, callback):
                with commit_cycle(instance, payload):
                    if callable(before_update_hook):
                        before_update_hook(context_of(instance))
                    before_update(extender, context, options, instance, payload)

                def done():
                    updated(extender, context, options, instance, payload)
                    if callable(updated_hook):
                        updated_hook(context_of(instance))
                    if callable(callback):
                        callback()

                native(payload, done)

            instance.set_data = set_data

        def detached(instance):
            native = _anchor.native_commits.pop(id(instance), None)
            if native is None:
                return
            vars(instance).pop("set_data", None)
            if instance.set_data != native:
                instance.set_data = native
            logger.debug("Restored native set_data on %r", instance)

        def_fields["behaviors"] = [
            Behavior(lifetimes={"created": created}),
            *def_fields["behaviors"],
            Behavior(lifetimes={"detached": detached}),
        ]
