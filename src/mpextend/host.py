"""Host runtime — a minimal path-keyed component system.

This is the runtime the adapter targets: it knows nothing about computed
values, old values or deep watching. It offers

- composition through Behavior fragments (data, properties, observers,
  methods, lifetimes, page_lifetimes),
- path-keyed observers: "a.b" fires when a commit writes a.b or one of its
  ancestors, "a.b.**" also fires for writes below a.b, "**" fires on every
  commit,
- per-property observer(instance, new, old) callbacks, run before path
  observers,
- a commit primitive, Instance.set_data(payload, callback), which applies a
  payload of host-dialect paths copy-on-write, notifies observers, then calls
  callback().

Observers are notified on every matching write, changed or not.

Thread safety: call set_scheduler() once from the owning thread. After that,
set_data() from any other thread is marshaled through the scheduler, so
commits on one instance are applied on one thread, one at a time.
"""

from __future__ import annotations

import copy
import functools
import logging
import threading
from typing import Callable

from mpextend import paths

logger = logging.getLogger("mpextend.host")

LIFETIMES = ("created", "attached", "detached")
PAGE_LIFETIMES = ("show", "hide", "resize")

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the scheduler used for commits issued off the owning thread.

    Call once from the main/UI thread:
        host.set_scheduler(app.call_from_thread)
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread()


def dispatch(fn: Callable[[], None]) -> None:
    """Run fn now on the owning thread, or hand it to the scheduler from any other."""
    if _scheduler is not None and threading.current_thread() != _scheduler_thread:
        _scheduler(fn)
    else:
        fn()


class Behavior:
    """One composable definition fragment."""

    __slots__ = ("data", "properties", "observers", "methods", "lifetimes", "page_lifetimes")

    def __init__(
        self,
        data: dict | None = None,
        properties: dict | None = None,
        observers: dict | None = None,
        methods: dict | None = None,
        lifetimes: dict | None = None,
        page_lifetimes: dict | None = None,
    ) -> None:
        self.data = dict(data or {})
        self.properties = dict(properties or {})
        self.observers = dict(observers or {})
        self.methods = dict(methods or {})
        self.lifetimes = dict(lifetimes or {})
        self.page_lifetimes = dict(page_lifetimes or {})

    def __repr__(self) -> str:
        parts = [name for name in self.__slots__ if getattr(self, name)]
        return f"Behavior({', '.join(parts)})"


def type_default(prop_type):
    if prop_type in (str, int, float, bool, list, dict):
        return prop_type()
    return None


def _coerce(prop_type, value):
    """Query-string style overrides arrive as text."""
    if not isinstance(value, str) or prop_type in (None, str):
        return value
    if prop_type in (int, float):
        return prop_type(value)
    if prop_type is bool:
        return value not in ("", "0", "false")
    return value


class _Observer:
    __slots__ = ("key", "base", "deep", "fn")

    def __init__(self, key: str, fn: Callable) -> None:
        self.key = key
        self.fn = fn
        self.deep = key == "**" or key.endswith(".**")
        if key == "**":
            self.base = None
        else:
            self.base = paths.split(key[:-3] if self.deep else key)

    def matches(self, written: list) -> bool:
        if self.base is None:
            return True
        if self.base[: len(written)] == written:
            return True
        return self.deep and written[: len(self.base)] == self.base


class Component:
    """A definition flattened for instantiation.

    Behaviors contribute in list order; the definition's own fields come last.
    Data and methods merge left to right, observers and lifetimes chain.
    """

    def __init__(self, definition: dict) -> None:
        own = Behavior(
            data=definition.get("data"),
            properties=definition.get("properties"),
            observers=definition.get("observers"),
            methods=definition.get("methods"),
            lifetimes=definition.get("lifetimes"),
            page_lifetimes=definition.get("page_lifetimes"),
        )
        self.data: dict = {}
        self.properties: dict[str, dict] = {}
        self.methods: dict[str, Callable] = {}
        self.observers: list[_Observer] = []
        self.lifetimes: dict[str, list[Callable]] = {name: [] for name in LIFETIMES}
        self.page_lifetimes: dict[str, list[Callable]] = {name: [] for name in PAGE_LIFETIMES}

        for fragment in [*definition.get("behaviors", []), own]:
            self.data.update(fragment.data)
            for name, spec in fragment.properties.items():
                self.properties[name] = spec if isinstance(spec, dict) else {"type": spec}
            self.methods.update(fragment.methods)
            for key, fn in fragment.observers.items():
                if callable(fn):
                    self.observers.append(_Observer(key, fn))
            for name, fn in fragment.lifetimes.items():
                if callable(fn):
                    self.lifetimes.setdefault(name, []).append(fn)
            for name, fn in fragment.page_lifetimes.items():
                if callable(fn):
                    self.page_lifetimes.setdefault(name, []).append(fn)

        self.before_create = definition.get("before_create")
        self.ready = definition.get("ready")
        self.moved = definition.get("moved")

    def initial_data(self) -> dict:
        data = copy.deepcopy(self.data)
        for name, spec in self.properties.items():
            value = spec["value"] if "value" in spec else type_default(spec.get("type"))
            data[name] = copy.deepcopy(value)
        return data

    def create(self, overrides: dict | None = None) -> Instance:
        """Instantiate and attach.

        Order: before_create -> data -> created -> overrides -> attached -> ready.
        overrides are applied as one set_data commit; keys that are not
        declared properties are ignored.
        """
        instance = Instance(self)
        if callable(self.before_create):
            self.before_create(instance)
        instance.data = self.initial_data()
        instance._fire("created")

        if overrides:
            applied = {}
            for name, value in overrides.items():
                spec = self.properties.get(name)
                if spec is None:
                    logger.debug("Ignoring override for undeclared property %r", name)
                    continue
                applied[name] = _coerce(spec.get("type"), value)
            if applied:
                instance.set_data(applied)

        instance.attach()
        return instance


class Instance:
    """A live component: owns its state tree and the commit primitive."""

    def __init__(self, component: Component) -> None:
        self.component = component
        self.data: dict = {}
        self.is_attached = False

    def __getattr__(self, name: str):
        component = self.__dict__.get("component")
        fn = component.methods.get(name) if component is not None else None
        if not callable(fn):
            raise AttributeError(name)
        return functools.partial(fn, self)

    # --- Commit ---

    def set_data(self, payload: dict, callback: Callable[[], None] | None = None) -> None:
        """Apply payload. Auto-marshals from background threads."""
        dispatch(lambda: self._commit(payload, callback))

    def _commit(self, payload: dict, callback: Callable[[], None] | None) -> None:
        previous = self.data
        self.data = paths.apply_payload(previous, payload)
        written = [paths.split(key) for key in payload]
        self._notify(previous, written)
        if callback is not None:
            callback()

    def _notify(self, previous: dict, written: list) -> None:
        touched = {segments[0] for segments in written}
        for name, spec in self.component.properties.items():
            observer = spec.get("observer")
            if name in touched and callable(observer):
                observer(self, self.data.get(name), previous.get(name))
        for observer in self.component.observers:
            if any(observer.matches(segments) for segments in written):
                if observer.base is None:
                    observer.fn(self, self.data)
                else:
                    observer.fn(self, paths.resolve(self.data, observer.base))

    # --- Lifetimes ---

    def _fire(self, name: str, *args) -> None:
        for fn in self.component.lifetimes.get(name, ()):
            fn(self, *args)

    def _fire_page(self, name: str, *args) -> None:
        for fn in self.component.page_lifetimes.get(name, ()):
            fn(self, *args)

    def attach(self) -> None:
        self._fire("attached")
        self.is_attached = True
        if callable(self.component.ready):
            self.component.ready(self)

    def detach(self) -> None:
        self._fire("detached")
        self.is_attached = False

    def move(self) -> None:
        if callable(self.component.moved):
            self.component.moved(self)

    def show(self) -> None:
        self._fire_page("show")

    def hide(self) -> None:
        self._fire_page("hide")

    def resize(self, size: dict | None = None) -> None:
        self._fire_page("resize", size)

    def __repr__(self) -> str:
        return f"Instance({self.data!r})"
