"""Runtime context — one accessor table unifying state, computed and methods.

Every source-dialect function (lifecycle hooks, methods, watch handlers,
computed getters and setters) is called with a RuntimeContext instead of the
host instance. Reads dispatch by lookup against the known keys:

    state (instance.data)  >  computed entries  >  methods (bound to the context)

Writes go through set(): inside a commit cycle they join the pending payload,
outside one they issue a commit on the instance.

    vm.count            # same as vm.get("count"), known keys only
    vm["count"]         # same, KeyError for unknown keys
    vm.set("count", 2)  # or vm["count"] = 2
    vm.props            # read-only view of state restricted to declared props
    vm.data             # read-only view of the remaining state
"""

from __future__ import annotations

import functools
from types import MappingProxyType
from typing import Any, Callable

from mpextend import _anchor
from mpextend._tracking import active_cycle
from mpextend.host import Behavior
from mpextend.installer import Installer

_UNSET = object()


class RuntimeContext:
    """Accessor table over a live instance."""

    __slots__ = ("instance", "_props", "_computed", "_methods")

    def __init__(
        self,
        instance,
        props: tuple[str, ...] = (),
        computed: dict | None = None,
        methods: dict[str, Callable] | None = None,
    ) -> None:
        self.instance = instance
        self._props = props
        self._computed = computed or {}
        self._methods = methods or {}

    def has(self, key: str) -> bool:
        return key in self.instance.data or key in self._computed or key in self._methods

    def get(self, key: str, default: Any = None) -> Any:
        data = self.instance.data
        if key in data:
            return data[key]
        entry = self._computed.get(key)
        if entry is not None and entry.getter is not None:
            return entry.getter(self)
        method = self._methods.get(key)
        if method is not None:
            return functools.partial(method, self)
        return default

    def set(self, key: str, value: Any) -> None:
        entry = self._computed.get(key)
        if entry is not None and entry.setter is None:
            raise AttributeError(f"computed property {key!r} has no setter")
        cycle = active_cycle(self.instance)
        if cycle is not None:
            cycle.payload[key] = value
        else:
            self.instance.set_data({key: value})

    def set_data(self, payload: dict, callback: Callable[[], None] | None = None) -> None:
        self.instance.set_data(payload, callback)

    def subscribe(self, expr, callback, immediate: bool = False):
        from mpextend.watcher import subscribe

        return subscribe(self.instance, expr, callback, immediate=immediate)

    @property
    def props(self) -> MappingProxyType:
        data = self.instance.data
        return MappingProxyType({k: v for k, v in data.items() if k in self._props})

    @property
    def data(self) -> MappingProxyType:
        data = self.instance.data
        return MappingProxyType({k: v for k, v in data.items() if k not in self._props})

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        value = self.get(name, _UNSET)
        if value is _UNSET:
            raise AttributeError(name)
        return value

    def __getitem__(self, key: str) -> Any:
        value = self.get(key, _UNSET)
        if value is _UNSET:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __repr__(self) -> str:
        return f"RuntimeContext({self.instance!r})"


def context_of(instance) -> RuntimeContext:
    """The instance's runtime context, or a bare state-only one if none was installed."""
    ctx = _anchor.runtime_contexts.get(id(instance))
    if ctx is None:
        ctx = RuntimeContext(instance)
    return ctx


def bind(fn: Callable) -> Callable:
    """Host-native wrapper calling fn with the instance's runtime context."""

    @functools.wraps(fn)
    def _bound(instance, *args, **kwargs):
        return fn(context_of(instance), *args, **kwargs)

    return _bound


class ContextInstaller(Installer):
    """Creates the runtime context first thing at created, drops it last at detached."""

    def definition_filter(self, extender, context, options, def_fields) -> None:
        props = tuple(context.get("properties") or ())
        computed = context.get("computed") or {}
        methods = context.get("methods") or {}

        def created(instance):
            _anchor.runtime_contexts[id(instance)] = RuntimeContext(instance, props, computed, methods)

        def detached(instance):
            _anchor.runtime_contexts.pop(id(instance), None)

        def_fields["behaviors"] = [
            Behavior(lifetimes={"created": created}),
            *def_fields["behaviors"],
            Behavior(lifetimes={"detached": detached}),
        ]
