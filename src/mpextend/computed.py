"""ComputedInstaller — derived state recomputed around every commit.

A computed entry is a getter, or a {"get": fn, "set": fn} pair:

    computed = {
        "double": lambda vm: vm.count * 2,
        "full_name": {
            "get": lambda vm: f"{vm.first} {vm.last}",
            "set": lambda vm, value: vm.set("first", value.split()[0]),
        },
    }

Initial values are evaluated at build time from data and prop defaults and
seeded as ordinary state, so they are part of the first render.

Before every commit (see UpdateInstaller):

1. setter pass: payload keys naming an entry with a setter are taken out of
   the payload and handed to the setter, in definition order. Writes the
   setter makes through the runtime context join the same payload.
2. recompute pass: every getter runs once against a scope over state merged
   with the pending payload. Only values that differ from the committed ones
   are added to the payload. Without this gate a computed write would
   trigger another recompute forever.

Getter results are memoized per pass; a getter that reaches itself raises
ComputedCycleError.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from mpextend import paths
from mpextend.host import Behavior
from mpextend.installer import Installer
from mpextend.pipeline import merge_maps
from mpextend.runtime import context_of
from mpextend.watcher import changed

logger = logging.getLogger("mpextend.computed")

_MISSING = object()
_EVALUATING = object()


class ComputedCycleError(RuntimeError):
    """A computed getter depends on itself."""


class ComputedEntry:
    __slots__ = ("name", "getter", "setter")

    def __init__(self, name: str, getter: Callable | None, setter: Callable | None = None) -> None:
        self.name = name
        self.getter = getter
        self.setter = setter

    def __repr__(self) -> str:
        kinds = [k for k in ("getter", "setter") if getattr(self, k) is not None]
        return f"ComputedEntry({self.name!r}, {'/'.join(kinds)})"


def normalize_computed(computed: dict) -> dict[str, ComputedEntry]:
    entries = {}
    for name, spec in computed.items():
        if callable(spec):
            entries[name] = ComputedEntry(name, spec)
        elif isinstance(spec, dict) and (callable(spec.get("get")) or callable(spec.get("set"))):
            getter, setter = spec.get("get"), spec.get("set")
            entries[name] = ComputedEntry(
                name, getter if callable(getter) else None, setter if callable(setter) else None
            )
        else:
            logger.debug("Dropping computed %r without getter or setter", name)
    return entries


class ComputedScope:
    """Read-only layered context for getters: state > computed > methods.

    Computed names are not read from state here; they are evaluated, once.
    """

    __slots__ = ("instance", "_state", "_entries", "_methods", "_memo")

    def __init__(self, state: dict, entries: dict[str, ComputedEntry], methods: dict, instance=None) -> None:
        self.instance = instance
        self._entries = entries
        self._methods = methods
        self._state = {k: v for k, v in state.items() if entries.get(k) is None or entries[k].getter is None}
        self._memo: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._state:
            return self._state[key]
        entry = self._entries.get(key)
        if entry is not None and entry.getter is not None:
            return self.evaluate(entry)
        method = self._methods.get(key)
        if method is not None:
            return functools.partial(method, self)
        return default

    def evaluate(self, entry: ComputedEntry) -> Any:
        cached = self._memo.get(entry.name, _MISSING)
        if cached is _EVALUATING:
            raise ComputedCycleError(f"computed {entry.name!r} depends on itself")
        if cached is not _MISSING:
            return cached
        self._memo[entry.name] = _EVALUATING
        try:
            value = entry.getter(self)
        except BaseException:
            del self._memo[entry.name]
            raise
        self._memo[entry.name] = value
        return value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        value = self.get(name, _MISSING)
        if value is _MISSING:
            raise AttributeError(name)
        return value

    def __getitem__(self, key: str) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: str) -> bool:
        return key in self._state or key in self._entries or key in self._methods


def run_setters(entries: dict[str, ComputedEntry], vm, payload: dict) -> None:
    for entry in entries.values():
        if entry.setter is not None and entry.name in payload:
            entry.setter(vm, payload.pop(entry.name))


def recompute(entries: dict[str, ComputedEntry], methods: dict, instance, payload: dict) -> dict:
    """Fold changed getter values into payload; returns just the changed ones."""
    getters = [e for e in entries.values() if e.getter is not None]
    if not getters:
        return {}
    committed = instance.data
    scope = ComputedScope(paths.apply_payload(committed, payload), entries, methods, instance)
    delta = {}
    for entry in getters:
        value = scope.evaluate(entry)
        if changed(value, committed.get(entry.name)):
            delta[entry.name] = value
    payload.update(delta)
    return delta


class ComputedInstaller(Installer):
    def install(self, extender, context, options) -> None:
        computed = merge_maps([*extender.fragments("computed"), options.get("computed")])
        context.set("computed", normalize_computed(computed))

    def before_update(self, extender, context, options, instance, payload) -> None:
        entries = context.get("computed")
        if not entries:
            return
        run_setters(entries, context_of(instance), payload)
        delta = recompute(entries, context.get("methods") or {}, instance, payload)
        if delta:
            logger.debug("Recomputed %s", list(delta))

    def definition_filter(self, extender, context, options, def_fields) -> None:
        entries = context.get("computed")
        if not entries:
            return
        scope = ComputedScope(context.get("state") or {}, entries, context.get("methods") or {})
        calculated = {
            name: scope.evaluate(entry) for name, entry in entries.items() if entry.getter is not None
        }
        def_fields["behaviors"] = [Behavior(data=calculated), *def_fields["behaviors"]]
