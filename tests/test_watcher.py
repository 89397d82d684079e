"""Tests for static watch options and dynamic subscriptions."""

from types import SimpleNamespace

import pytest

from mpextend import Component, PathSyntaxError, component, context_of, subscribe, unsubscribe
from mpextend import _anchor
from mpextend.watcher import Watcher, WatchEntry, changed, group_watchers, normalize_watch


def _mount(options, overrides=None):
    return Component(component(options)).create(overrides)


def _record(calls):
    return lambda vm, new, old: calls.append((new, old))


class TestChanged:
    def test_equal_values_unchanged(self):
        assert not changed(1, 1)
        assert not changed({"a": [1]}, {"a": [1]})

    def test_identity_short_circuit(self):
        nan = float("nan")
        assert not changed(nan, nan)

    def test_different_values(self):
        assert changed(1, 2)
        assert changed({"a": 1}, {"a": 2})
        assert changed(None, 0)


class TestNormalizeWatch:
    def test_callable(self):
        fn = lambda vm, new, old: None
        (entry,) = normalize_watch("a", fn)
        assert entry.handler is fn
        assert not entry.deep and not entry.immediate

    def test_dict_flags(self):
        (entry,) = normalize_watch("a", {"handler": lambda vm, n, o: None, "deep": True, "immediate": True})
        assert entry.deep and entry.immediate

    def test_list_of_specs(self):
        entries = normalize_watch("a", [lambda vm, n, o: None, "on_a", {"handler": "on_a", "deep": True}])
        assert len(entries) == 3

    def test_unusable_specs_dropped(self):
        assert normalize_watch("a", [{"deep": True}, 42]) == []

    def test_bad_path_raises(self):
        with pytest.raises(PathSyntaxError):
            normalize_watch("a..b", lambda vm, n, o: None)

    def test_grouping_by_path_and_deep(self):
        h = lambda vm, n, o: None
        watch = {
            "a.0.b": [WatchEntry("a.0.b", h), WatchEntry("a.0.b", h, deep=True), WatchEntry("a.0.b", h)],
        }
        groups = group_watchers(watch)
        assert set(groups) == {"a[0].b", "a[0].b.**"}
        assert len(groups["a[0].b"][2]) == 2
        assert groups["a[0].b.**"][1] is True


class TestWatcher:
    def test_call_gated_on_change(self):
        calls = []
        watcher = Watcher("a", [WatchEntry("a", _record(calls))])
        watcher.seed(1)
        assert not watcher.call(None, 1)
        assert watcher.call(None, 2)
        assert calls == [(2, 1)]
        assert watcher.old_value == 2

    def test_slot_moves_before_handlers(self):
        seen = []
        watcher = Watcher("a", [])
        watcher.entries.append(WatchEntry("a", lambda vm, new, old: seen.append(watcher.old_value)))
        watcher.call(None, 5)
        assert seen == [5]

    def test_handlers_fire_in_registration_order(self):
        log = []
        watcher = Watcher(
            "a",
            [WatchEntry("a", lambda vm, n, o: log.append("first")), WatchEntry("a", lambda vm, n, o: log.append("second"))],
        )
        watcher.call(None, 1)
        assert log == ["first", "second"]

    def test_fire_immediate_only_immediate_entries(self):
        log = []
        watcher = Watcher(
            "a",
            [
                WatchEntry("a", lambda vm, n, o: log.append(("plain", n, o))),
                WatchEntry("a", lambda vm, n, o: log.append(("immediate", n, o)), immediate=True),
            ],
        )
        watcher.seed(1)
        watcher.fire_immediate(None, 1)
        assert log == [("immediate", 1, 1)]
        assert watcher.immediate


class TestStaticWatch:
    def test_fires_on_change(self):
        calls = []
        instance = _mount({"data": {"count": 1}, "watch": {"count": _record(calls)}})
        instance.set_data({"count": 2})
        assert calls == [(2, 1)]

    def test_gated_when_unchanged(self):
        calls = []
        instance = _mount({"data": {"count": 1}, "watch": {"count": _record(calls)}})
        instance.set_data({"count": 1})
        assert calls == []

    def test_successive_old_values(self):
        calls = []
        instance = _mount({"data": {"count": 1}, "watch": {"count": _record(calls)}})
        instance.set_data({"count": 2})
        instance.set_data({"count": 3})
        assert calls == [(2, 1), (3, 2)]

    def test_seeded_before_overrides(self):
        calls = []
        _mount(
            {"props": {"a": {"type": int, "default": 114}}, "watch": {"a": _record(calls)}},
            overrides={"a": 514},
        )
        assert calls == [(514, 114)]

    def test_no_override_no_fire(self):
        calls = []
        _mount({"props": {"a": {"type": int, "default": 114}}, "watch": {"a": _record(calls)}})
        assert calls == []

    def test_indexed_source_path(self):
        calls = []
        instance = _mount({"data": {"a": [{"b": 1}]}, "watch": {"a.0.b": _record(calls)}})
        instance.set_data({"a[0].b": 2})
        instance.set_data({"a": [{"b": 3}]})
        assert calls == [(2, 1), (3, 2)]

    def test_deep_versus_shallow(self):
        deep, shallow = [], []
        instance = _mount(
            {
                "data": {"a": {"b": {"c": 1}}},
                "watch": {"a.b": [{"handler": _record(deep), "deep": True}, _record(shallow)]},
            }
        )
        instance.set_data({"a.b.c": 2})
        assert deep == [({"c": 2}, {"c": 1})]
        assert shallow == []

    def test_shallow_fires_on_replacement(self):
        calls = []
        instance = _mount({"data": {"a": {"b": {"c": 1}}}, "watch": {"a.b": _record(calls)}})
        instance.set_data({"a.b": {"c": 5}})
        assert calls == [({"c": 5}, {"c": 1})]

    def test_deep_old_value_is_a_snapshot(self):
        calls = []
        instance = _mount(
            {"data": {"a": {"b": {"c": 1}}}, "watch": {"a.b": {"handler": _record(calls), "deep": True}}}
        )
        instance.set_data({"a.b.c": 2})
        instance.set_data({"a.b.c": 3})
        assert calls == [({"c": 2}, {"c": 1}), ({"c": 3}, {"c": 2})]

    def test_deep_detects_in_place_edit(self):
        calls = []
        instance = _mount(
            {"data": {"a": {"b": {"c": {"d": 1}}}}, "watch": {"a.b": {"handler": _record(calls), "deep": True}}}
        )
        a = instance.data["a"]
        a["b"]["c"]["d"] = 2
        instance.set_data({"a": a})
        assert calls == [({"c": {"d": 2}}, {"c": {"d": 1}})]

    def test_deep_handler_arguments_stay_put(self):
        calls = []
        instance = _mount(
            {"data": {"a": {"b": {"x": 1}}}, "watch": {"a.b": {"handler": _record(calls), "deep": True}}}
        )
        a = instance.data["a"]
        a["b"]["x"] = 2
        instance.set_data({"a": a})
        a["b"]["x"] = 3
        instance.set_data({"a": a})
        assert calls == [({"x": 2}, {"x": 1}), ({"x": 3}, {"x": 2})]

    def test_object_path_seeds(self):
        calls = []
        instance = _mount(
            {"data": {"obj": SimpleNamespace(inner=SimpleNamespace(y=1))}, "watch": {"obj.inner.y": _record(calls)}}
        )
        instance.set_data({"obj": SimpleNamespace(inner=SimpleNamespace(y=2))})
        assert calls == [(2, 1)]

    def test_immediate_fires_once_at_attach(self):
        calls = []
        instance = _mount({"data": {"a": 1}, "watch": {"a": {"handler": _record(calls), "immediate": True}}})
        assert calls == [(1, 1)]
        instance.set_data({"a": 2})
        assert calls == [(1, 1), (2, 1)]

    def test_immediate_after_override(self):
        calls = []
        _mount(
            {
                "properties": {"a": {"type": int, "value": 1}},
                "watch": {"a": {"handler": _record(calls), "immediate": True}},
            },
            overrides={"a": 2},
        )
        assert calls == [(2, 1), (2, 2)]

    def test_method_name_handler(self):
        calls = []
        instance = _mount(
            {
                "data": {"count": 0},
                "methods": {"on_count": lambda vm, new, old: calls.append((new, old))},
                "watch": {"count": "on_count"},
            }
        )
        instance.set_data({"count": 4})
        assert calls == [(4, 0)]

    def test_handler_receives_runtime_context(self):
        seen = []
        instance = _mount(
            {"data": {"a": 1, "b": 10}, "watch": {"a": lambda vm, new, old: seen.append(vm.b + new)}}
        )
        instance.set_data({"a": 2})
        assert seen == [12]

    def test_handler_commit_does_not_refire(self):
        calls = []

        def bump(vm, new, old):
            calls.append((new, old))
            if new < 3:
                vm.set("count", new + 1)

        instance = _mount({"data": {"count": 0}, "watch": {"count": bump}})
        instance.set_data({"count": 1})
        assert calls == [(1, 0), (2, 1), (3, 2)]
        assert instance.data["count"] == 3

    def test_native_observer_runs_alongside(self):
        log = []
        instance = _mount(
            {
                "data": {"count": 0},
                "observers": {"count": lambda vm, value: log.append(("observer", value))},
                "watch": {"count": lambda vm, new, old: log.append(("watch", new))},
            }
        )
        instance.set_data({"count": 1})
        instance.set_data({"count": 1})
        assert log == [("observer", 1), ("watch", 1), ("observer", 1)]

    def test_bad_watch_path_fails_build(self):
        with pytest.raises(PathSyntaxError):
            component({"watch": {"a..b": lambda vm, n, o: None}})

    def test_tables_dropped_at_detach(self):
        instance = _mount({"data": {"a": 1}, "watch": {"a": lambda vm, n, o: None}})
        assert id(instance) in _anchor.static_watchers
        instance.detach()
        assert id(instance) not in _anchor.static_watchers
        assert id(instance) not in _anchor.dynamic_watchers


class TestSubscribe:
    def test_getter_immediate(self):
        calls = []
        instance = _mount({"data": {"a": 1, "b": 2}})
        subscribe(instance, lambda vm: vm.a + vm.b, lambda new, old: calls.append((new, old)), immediate=True)
        assert calls == [(3, None)]
        instance.set_data({"a": 2})
        assert calls == [(3, None), (4, 3)]

    def test_getter_gated(self):
        calls = []
        instance = _mount({"data": {"a": 1, "b": 2}})
        subscribe(instance, lambda vm: vm.a + vm.b, lambda new, old: calls.append((new, old)))
        instance.set_data({"a": 2, "b": 1})
        assert calls == []

    def test_path_subscription(self):
        calls = []
        instance = _mount({"data": {"a": [{"b": 1}], "other": 0}})
        subscribe(instance, "a.0.b", lambda new, old: calls.append((new, old)))
        instance.set_data({"other": 1})
        instance.set_data({"a[0].b": 5})
        assert calls == [(5, 1)]

    def test_subscribe_from_created_hook(self):
        calls = []
        instance = _mount(
            {
                "data": {"count": 0},
                "created": lambda vm: vm.subscribe("count", lambda new, old: calls.append((new, old))),
            }
        )
        instance.set_data({"count": 1})
        assert calls == [(1, 0)]

    def test_path_subscription_detects_in_place_edit(self):
        calls = []
        instance = _mount({"data": {"a": {"b": [1]}}})
        subscribe(instance, "a", lambda new, old: calls.append((new, old)))
        a = instance.data["a"]
        a["b"].append(2)
        instance.set_data({"a": a})
        assert calls == [({"b": [1, 2]}, {"b": [1]})]

    def test_dispose(self):
        calls = []
        instance = _mount({"data": {"count": 0}})
        sub = subscribe(instance, "count", lambda new, old: calls.append(new))
        instance.set_data({"count": 1})
        sub.dispose()
        sub.dispose()
        instance.set_data({"count": 2})
        assert calls == [1]
        assert sub.disposed

    def test_unsubscribe_by_token(self):
        instance = _mount({"data": {"count": 0}})
        sub = subscribe(instance, "count", lambda new, old: None)
        assert unsubscribe(instance, sub.token)
        assert not unsubscribe(instance, sub.token)

    def test_callback_may_dispose_sibling(self):
        calls = []
        instance = _mount({"data": {"count": 0}})
        subs = []
        subs.append(subscribe(instance, "count", lambda new, old: subs[1].dispose()))
        subs.append(subscribe(instance, "count", lambda new, old: calls.append(new)))
        instance.set_data({"count": 1})
        assert calls == []

    def test_tokens_unique(self):
        instance = _mount({"data": {"count": 0}})
        a = subscribe(instance, "count", lambda new, old: None)
        b = subscribe(instance, "count", lambda new, old: None)
        assert a.token != b.token

    def test_rejects_bad_expression(self):
        instance = _mount({"data": {}})
        with pytest.raises(TypeError, match="neither a string nor a function"):
            subscribe(instance, 5, lambda new, old: None)

    def test_rejects_bad_callback(self):
        instance = _mount({"data": {}})
        with pytest.raises(TypeError):
            subscribe(instance, "a", None)

    def test_rejects_bad_path(self):
        instance = _mount({"data": {}})
        with pytest.raises(PathSyntaxError):
            subscribe(instance, "a[", lambda new, old: None)

    def test_requires_watcher_table(self):
        bare = Component({}).create()
        with pytest.raises(RuntimeError):
            subscribe(bare, "a", lambda new, old: None)

    def test_detached_instance_rejected(self):
        instance = _mount({"data": {"a": 1}})
        instance.detach()
        with pytest.raises(RuntimeError):
            subscribe(instance, "a", lambda new, old: None)

    def test_runtime_context_subscribe(self):
        calls = []
        instance = _mount({"data": {"a": 1}})
        context_of(instance).subscribe("a", lambda new, old: calls.append((new, old)), immediate=True)
        assert calls == [(1, None)]
