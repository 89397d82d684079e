"""mpextend: Vue-style component options on a path-observer component runtime."""

from importlib.metadata import version as _version

__version__ = _version("mpextend")

from mpextend.context import Context
from mpextend.installer import Installer
from mpextend.pipeline import Extender, component, default_installers
from mpextend.paths import PathSyntaxError, rewrite, resolve, copy_on_write_path
from mpextend.runtime import RuntimeContext, ContextInstaller, context_of
from mpextend.state import StateInstaller
from mpextend.lifecycle import LifeCycleInstaller
from mpextend.watcher import WatcherInstaller, Subscription, subscribe, unsubscribe
from mpextend.computed import ComputedInstaller, ComputedCycleError
from mpextend.update import UpdateInstaller
from mpextend.host import Behavior, Component, Instance, set_scheduler

__all__ = [
    "Context",
    "Installer",
    "Extender",
    "component",
    "default_installers",
    "PathSyntaxError",
    "rewrite",
    "resolve",
    "copy_on_write_path",
    "RuntimeContext",
    "ContextInstaller",
    "context_of",
    "StateInstaller",
    "LifeCycleInstaller",
    "WatcherInstaller",
    "Subscription",
    "subscribe",
    "unsubscribe",
    "ComputedInstaller",
    "ComputedCycleError",
    "UpdateInstaller",
    "Behavior",
    "Component",
    "Instance",
    "set_scheduler",
]
