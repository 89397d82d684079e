"""StateInstaller — data, props and methods.

Vue-style props are translated to host properties:

    {"age": {"type": int, "default": 24, "validator": lambda v: v > 0},
     "obj": {"type": dict, "default": lambda: {"created": 0}},
     "name": {"type": str, "required": True}}
    ["a", "b"]                                          # untyped, no default

`data` may be a dict or a function receiving a read-only view of the prop
defaults. Context entries written: properties, prop_rules, data, state,
methods.
"""

from __future__ import annotations

import logging
from types import MappingProxyType

from mpextend.host import Behavior, type_default
from mpextend.installer import Installer
from mpextend.pipeline import merge_maps
from mpextend.runtime import bind

logger = logging.getLogger("mpextend.state")


def normalize_props(props) -> tuple[dict, dict]:
    """Vue props -> (host properties, validation rules)."""
    if not props:
        return {}, {}
    if isinstance(props, (list, tuple)):
        props = {name: {} for name in props}

    properties: dict[str, dict] = {}
    rules: dict[str, dict] = {}
    for name, spec in props.items():
        if not isinstance(spec, dict):
            spec = {"type": spec}
        prop = {"type": spec.get("type")}
        if "default" in spec:
            default = spec["default"]
            prop["value"] = default() if callable(default) else default
        elif "value" in spec:
            prop["value"] = spec["value"]
        else:
            prop["value"] = False if spec.get("type") is bool else None
        if callable(spec.get("observer")):
            prop["observer"] = spec["observer"]
        properties[name] = prop
        rules[name] = {
            "type": spec.get("type"),
            "required": spec.get("required") is True,
            "validator": spec.get("validator"),
        }
    return properties, rules


def prop_defaults(properties: dict) -> dict:
    return {
        name: spec["value"] if "value" in spec else type_default(spec.get("type"))
        for name, spec in properties.items()
    }


def check_props(rules: dict, data: dict) -> list[str]:
    """Problems with the current prop values, as Vue would warn about them."""
    problems = []
    for name, rule in rules.items():
        value = data.get(name)
        if value is None:
            if rule["required"]:
                problems.append(f"Missing required prop: {name!r}")
            continue
        expected = rule["type"]
        if isinstance(expected, (type, tuple)) and not isinstance(value, expected):
            problems.append(f"Invalid prop: type check failed for prop {name!r}, got {value!r}")
        validator = rule["validator"]
        if callable(validator) and not validator(value):
            problems.append(f"Invalid prop: custom validator check failed for prop {name!r}")
    return problems


class StateInstaller(Installer):
    def install(self, extender, context, options) -> None:
        properties = merge_maps(
            [
                *extender.fragments("properties"),
                options.get("properties"),
            ]
        )
        properties = {name: spec if isinstance(spec, dict) else {"type": spec} for name, spec in properties.items()}
        vue_properties, rules = normalize_props(options.get("props"))
        properties.update(vue_properties)

        defaults = prop_defaults(properties)
        data_option = options.get("data")
        if callable(data_option):
            data_option = data_option(MappingProxyType(defaults))
        data = merge_maps([*extender.fragments("data"), data_option])

        methods = merge_maps([*extender.fragments("methods"), options.get("methods")])

        context.set("properties", properties)
        context.set("prop_rules", rules)
        context.set("data", data)
        context.set("state", {**defaults, **data})
        context.set("methods", {name: fn for name, fn in methods.items() if callable(fn)})

    def definition_filter(self, extender, context, options, def_fields) -> None:
        rules = context.get("prop_rules")
        lifetimes = {}
        if rules:
            def attached(instance):
                for problem in check_props(rules, instance.data):
                    logger.warning("%s (component %r)", problem, options.get("name", "anonymous"))

            lifetimes["attached"] = attached

        properties = {}
        for name, spec in context.get("properties").items():
            spec = dict(spec)
            if callable(spec.get("observer")):
                spec["observer"] = bind(spec["observer"])
            properties[name] = spec

        def_fields["behaviors"].append(
            Behavior(
                data=context.get("data"),
                properties=properties,
                methods={name: bind(fn) for name, fn in context.get("methods").items()},
                lifetimes=lifetimes,
            )
        )
