"""WatcherInstaller — watch semantics built on host path observers.

Host observers pass only the new value and fire on every matching write. A
Watcher adds what they lack: one old-value slot per group and an equality
gate, so handlers see (new, old) and only when the value actually changed.

Static watchers come from the merged `watch` option. Entries are grouped by
(host path, deep); each group gets one host observer, keyed by the host path
with ".**" appended for deep groups:

    watch = {"a.0.b": handler}                    -> observer "a[0].b"
    watch = {"a.b": {"handler": h, "deep": True}} -> observer "a.b.**"

Per instance, group slots are seeded at created, before external overrides
are applied, so the first change reported after instantiation is measured
against the value the component started with. Immediate groups fire once at
attached with (current, slot) and then join the normal flow. Deep groups and
dynamic watchers keep deep copies in their slot, so a nested field edited in
place and committed under an unchanged container still reads as a change.

Dynamic watchers are registered at runtime with subscribe(). They all hang off
the catch-all "**" observer, which re-derives each one's value (by path or
getter) after every commit and feeds it through the same gate.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from mpextend import _anchor, paths
from mpextend.host import Behavior
from mpextend.installer import Installer
from mpextend.pipeline import merge_maps
from mpextend.runtime import context_of

logger = logging.getLogger("mpextend.watcher")

WILDCARD = "**"


def changed(new: Any, old: Any) -> bool:
    return new is not old and new != old


class WatchEntry:
    """One normalized watch declaration."""

    __slots__ = ("path", "handler", "deep", "immediate")

    def __init__(self, path: str | None, handler: Callable, deep: bool = False, immediate: bool = False) -> None:
        self.path = path
        self.handler = handler
        self.deep = deep
        self.immediate = immediate

    def __repr__(self) -> str:
        flags = [f for f in ("deep", "immediate") if getattr(self, f)]
        return f"WatchEntry({self.path!r}{', ' if flags else ''}{', '.join(flags)})"


class Watcher:
    """A group of handlers sharing one value source and one old-value slot."""

    __slots__ = ("path", "getter", "entries", "deep", "old_value")

    def __init__(
        self,
        path: str | None,
        entries: list[WatchEntry],
        deep: bool = False,
        getter: Callable | None = None,
    ) -> None:
        self.path = path
        self.getter = getter
        self.entries = entries
        self.deep = deep
        self.old_value = None

    @property
    def immediate(self) -> bool:
        return any(e.immediate for e in self.entries)

    def current(self, vm) -> Any:
        if self.getter is not None:
            return self.getter(vm)
        return paths.resolve(vm.instance.data, self.path)

    def snapshot(self, value: Any) -> Any:
        """Deep groups keep a private copy so in-place edits to state still register."""
        return copy.deepcopy(value) if self.deep else value

    def seed(self, value: Any) -> None:
        self.old_value = self.snapshot(value)

    def call(self, vm, new: Any) -> bool:
        """Fire every handler with (new, old) if the value changed. Returns whether it fired."""
        old = self.old_value
        if not changed(new, old):
            return False
        new = self.snapshot(new)
        # slot moves first so a commit issued from a handler compares against new
        self.old_value = new
        for entry in self.entries:
            entry.handler(vm, new, old)
        return True

    def fire_immediate(self, vm, new: Any) -> None:
        """The unconditional first pass for immediate handlers."""
        old = self.old_value
        new = self.snapshot(new)
        self.old_value = new
        for entry in self.entries:
            if entry.immediate:
                entry.handler(vm, new, old)

    def __repr__(self) -> str:
        source = self.path if self.getter is None else getattr(self.getter, "__name__", "getter")
        return f"Watcher({source!r}, {len(self.entries)} handlers, old={self.old_value!r})"


def _method_handler(name: str) -> Callable:
    def handler(vm, new, old):
        method = vm.get(name)
        if callable(method):
            method(new, old)

    handler.__name__ = name
    return handler


def normalize_watch(path: str, spec) -> list[WatchEntry]:
    """One watch option value -> WatchEntries. Raises PathSyntaxError for a bad path.

    spec may be a callable, a method name, a dict with handler/deep/immediate,
    or a list of those. Anything without a usable handler is dropped.
    """
    paths.validate(path)
    entries = []
    for item in spec if isinstance(spec, list) else [spec]:
        if isinstance(item, str):
            entries.append(WatchEntry(path, _method_handler(item)))
        elif callable(item):
            entries.append(WatchEntry(path, item))
        elif isinstance(item, dict):
            handler = item.get("handler")
            if isinstance(handler, str):
                handler = _method_handler(handler)
            if not callable(handler):
                logger.debug("Dropping watch on %r without a handler", path)
                continue
            entries.append(
                WatchEntry(path, handler, deep=item.get("deep") is True, immediate=item.get("immediate") is True)
            )
        else:
            logger.debug("Dropping unusable watch spec on %r: %r", path, item)
    return entries


def group_watchers(watch: dict[str, list[WatchEntry]]) -> dict[str, tuple[str, bool, list[WatchEntry]]]:
    """Group entries by host observer key -> (source path, deep, entries)."""
    groups: dict[str, tuple[str, bool, list[WatchEntry]]] = {}
    for path, entries in watch.items():
        observer_path = paths.rewrite(path)
        for deep in (True, False):
            selected = [e for e in entries if e.deep is deep]
            if not selected:
                continue
            key = f"{observer_path}.**" if deep else observer_path
            groups.setdefault(key, (path, deep, []))[2].extend(selected)
    return groups


# ─── Dynamic watchers ────────────────────────────────────────────────────────


class Subscription:
    """Disposable handle for a dynamic watcher."""

    __slots__ = ("_instance_id", "token", "_disposed")

    def __init__(self, instance, token: int) -> None:
        self._instance_id = id(instance)
        self.token = token
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop delivering callbacks. Safe to call twice."""
        table = _anchor.dynamic_watchers.get(self._instance_id)
        if table is not None:
            table.pop(self.token, None)
        self._disposed = True

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Subscription({self.token}, {state})"


def subscribe(instance, expr, callback: Callable[[Any, Any], None], immediate: bool = False) -> Subscription:
    """Watch a path or a getter on a live instance.

    expr is a source-dialect path or a function of the runtime context.
    callback(new, old) fires after any commit that changes the derived value.
    With immediate=True it also fires once now, with (current, None).

    Usage:
        sub = subscribe(instance, lambda vm: vm.a + vm.b, on_sum, immediate=True)
        ...
        sub.dispose()
    """
    if callable(expr):
        watcher_path, getter = None, expr
    elif isinstance(expr, str):
        watcher_path, getter = paths.validate(expr), None
    else:
        raise TypeError(f"{expr!r} is neither a string nor a function.")
    if not callable(callback):
        raise TypeError(f"callback must be callable, got {callback!r}")

    table = _anchor.dynamic_watchers.get(id(instance))
    if table is None:
        raise RuntimeError(f"{instance!r} has no watcher table; subscribe between created and detached")

    entry = WatchEntry(watcher_path, lambda vm, new, old: callback(new, old), deep=True, immediate=immediate)
    watcher = Watcher(watcher_path, [entry], deep=True, getter=getter)
    vm = context_of(instance)
    current = watcher.current(vm)
    if immediate:
        watcher.fire_immediate(vm, current)
    else:
        watcher.seed(current)

    token = _anchor.new_id()
    table[token] = watcher
    return Subscription(instance, token)


def unsubscribe(instance, token: int) -> bool:
    """Drop a dynamic watcher. Returns whether it was registered."""
    table = _anchor.dynamic_watchers.get(id(instance))
    return table is not None and table.pop(token, None) is not None


def _run_dynamic(instance) -> None:
    table = _anchor.dynamic_watchers.get(id(instance))
    if not table:
        return
    vm = context_of(instance)
    for token, watcher in list(table.items()):
        # a callback earlier in this pass may have removed it
        if table.get(token) is watcher:
            watcher.call(vm, watcher.current(vm))


# ─── Installer ───────────────────────────────────────────────────────────────


class WatcherInstaller(Installer):
    def install(self, extender, context, options) -> None:
        watch = merge_maps([*extender.fragments("watch"), options.get("watch")])
        normalized = {}
        for path, spec in watch.items():
            entries = normalize_watch(path, spec)
            if entries:
                normalized[path] = entries

        observers = merge_maps([*extender.fragments("observers"), options.get("observers")])

        context.set("watch", normalized)
        context.set("observers", {k: fn for k, fn in observers.items() if callable(fn)})

    def definition_filter(self, extender, context, options, def_fields) -> None:
        groups = group_watchers(context.get("watch") or {})
        native = context.get("observers") or {}

        def observe(key: str) -> Callable:
            native_fn = native.get(key)

            def _observe(instance, value):
                if native_fn is not None:
                    native_fn(context_of(instance), value)
                watcher = _anchor.static_watchers.get(id(instance), {}).get(key)
                if watcher is not None:
                    watcher.call(context_of(instance), value)

            return _observe

        def observe_all(instance, data):
            native_fn = native.get(WILDCARD)
            if native_fn is not None:
                native_fn(context_of(instance), data)
            _run_dynamic(instance)

        observers = {key: observe(key) for key in dict.fromkeys([*native, *groups]) if key != WILDCARD}
        observers[WILDCARD] = observe_all

        def created(instance):
            table = {key: Watcher(path, list(entries), deep) for key, (path, deep, entries) in groups.items()}
            _anchor.static_watchers[id(instance)] = table
            _anchor.dynamic_watchers[id(instance)] = {}
            for watcher in table.values():
                watcher.seed(paths.resolve(instance.data, watcher.path))

        def attached(instance):
            table = _anchor.static_watchers.get(id(instance), {})
            vm = context_of(instance)
            for watcher in table.values():
                if watcher.immediate:
                    watcher.fire_immediate(vm, watcher.current(vm))

        def detached(instance):
            _anchor.static_watchers.pop(id(instance), None)
            _anchor.dynamic_watchers.pop(id(instance), None)

        if groups:
            logger.debug("Static watchers: %s", list(groups))

        def_fields["behaviors"] = [
            Behavior(observers=observers, lifetimes={"created": created, "attached": attached}),
            *def_fields["behaviors"],
            Behavior(lifetimes={"detached": detached}),
        ]
