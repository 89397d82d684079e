"""Installer — the contributor interface.

Every member is optional. The pipeline looks members up by name and skips
anything missing or not callable, so a contributor may be any object that
implements a subset; subclassing Installer is only a convenience.

Fragment providers return a map (or None) that is merged left to right across
installers, then with the component options. Hook attributes are chained in
install order.

Hook vocabulary:
    host:   created, attached, detached, ready, moved   (called with the runtime context)
    source: before_create, before_mount, mounted,
            before_destroy, destroyed                   (called with the runtime context,
                                                         except before_create: bare instance)
"""

from __future__ import annotations


class Installer:
    """Base contributor with every stage and fragment left empty."""

    def install(self, extender, context, options) -> None:
        """Write merged artifacts into the context."""

    def definition_filter(self, extender, context, options, def_fields) -> None:
        """Append (or prepend) host behaviors to def_fields["behaviors"]."""

    def watch(self):
        return None

    def computed(self):
        return None

    def methods(self):
        return None

    def observers(self):
        return None

    def data(self):
        return None

    def properties(self):
        return None

    def lifetimes(self, extender, context, options):
        return None

    def page_lifetimes(self, extender, context, options):
        return None

    def before_update(self, extender, context, options, instance, payload) -> None:
        pass

    def updated(self, extender, context, options, instance, payload) -> None:
        pass

    def __repr__(self) -> str:
        return type(self).__name__
