"""Property paths — parse, rewrite, read and copy-on-write along a path.

Two dialects share one grammar of word segments separated by dots:

    source dialect:  a.0.b      (numeric segments written as .N)
    host dialect:    a[0].b     (numeric segments written as [N])

Reads are guarded: walking into None or a primitive yields None instead of
raising. Writes never mutate an existing container below the root; every
container on the path is replaced by a shallow copy, so values handed out
earlier (watcher old values, render payloads) stay valid snapshots.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping

_ALLOWED = re.compile(r"^[A-Za-z0-9_.\[\]]+$")
_SEGMENT = re.compile(r"(\.?)([A-Za-z0-9_]+)|\[(\d+)\]")
_DOT_INDEX = re.compile(r"\.(\d+)(?=\.|\[|$)")

_PRIMITIVES = (str, bytes, int, float, complex, bool)
_MISSING = object()

Segment = str | int


class PathSyntaxError(ValueError):
    """Raised for a path outside the `[A-Za-z0-9_.[]]` grammar."""

    def __init__(self, path: object) -> None:
        super().__init__(
            f"Failed watching path: {path!r}. Watcher only accepts simple "
            "dot-delimited paths. For full control, use a function instead."
        )
        self.path = path


def validate(path: object) -> str:
    """Return path unchanged if it is well formed, else raise PathSyntaxError."""
    if not isinstance(path, str) or not _ALLOWED.match(path):
        raise PathSyntaxError(path)
    split(path)
    return path


def split(path: str) -> list[Segment]:
    """Split a path of either dialect into segments. Numeric segments become ints."""
    segments: list[Segment] = []
    pos = 0
    while pos < len(path):
        m = _SEGMENT.match(path, pos)
        if m is None:
            raise PathSyntaxError(path)
        dot, word, index = m.groups()
        # words are dot-separated: none before the first, one before every other
        if word is not None and bool(dot) != (pos > 0):
            raise PathSyntaxError(path)
        if index is not None:
            segments.append(int(index))
        elif word.isdigit() and segments:
            segments.append(int(word))
        else:
            segments.append(word)
        pos = m.end()
    if not segments:
        raise PathSyntaxError(path)
    return segments


def join(segments: list[Segment]) -> str:
    """Render segments in the host dialect."""
    out = []
    for seg in segments:
        if isinstance(seg, int):
            out.append(f"[{seg}]")
        else:
            out.append(f".{seg}" if out else seg)
    return "".join(out)


def rewrite(path: str) -> str:
    """Source dialect -> host dialect: "a.0.b" -> "a[0].b"."""
    return _DOT_INDEX.sub(lambda m: f"[{m.group(1)}]", path)


def is_container(value: object) -> bool:
    return value is not None and not isinstance(value, _PRIMITIVES)


def _child(container, seg: Segment, default=None):
    if not is_container(container):
        return default
    if isinstance(container, Mapping):
        if seg in container:
            return container[seg]
        if isinstance(seg, int):
            return container.get(str(seg), default)
        return default
    if isinstance(container, (list, tuple)):
        if isinstance(seg, int) and -len(container) <= seg < len(container):
            return container[seg]
        return default
    return getattr(container, str(seg), default)


def resolve(root, path: str | list[Segment]):
    """Read the value at path, or None when any step is missing."""
    segments = split(path) if isinstance(path, str) else path
    value = root
    for seg in segments:
        if not is_container(value):
            return None
        value = _child(value, seg)
    return value


def _put(container, seg: Segment, value) -> None:
    if isinstance(container, list):
        if seg == len(container):
            container.append(value)
        else:
            container[seg] = value
    elif isinstance(container, MutableMapping):
        container[seg] = value
    else:
        raise TypeError(f"cannot assign {seg!r} on {type(container).__name__}")


def _copy(value):
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple)):
        return list(value)
    return value


def copy_on_write_path(root: MutableMapping, path: str | list[Segment], create: bool = False):
    """Shallow-copy every container along path inside root and return the leaf.

    root is mutated at its top level only: each traversed child is replaced by
    a fresh copy, so the returned leaf can be mutated without aliasing the tree
    root was copied from. Walking into a primitive returns None, as does a
    missing step unless create is set, in which case an empty dict is placed.
Once the walk reaches an object that is neither a mapping nor a sequence, the
rest of the path is only read and the value found there is returned.
    """
    segments = split(path) if isinstance(path, str) else path
    node = root
    last = len(segments) - 1
    for i, seg in enumerate(segments):
        child = _child(node, seg, _MISSING)
        if child is _MISSING:
            if not create:
                return None
            child = {}
        elif not is_container(child):
            return child if i == last else None
        elif not isinstance(child, (Mapping, list, tuple)):
            # plain objects are read through, never copied
            return resolve(child, segments[i + 1 :])
        else:
            child = _copy(child)
        _put(node, seg, child)
        node = child
    return node


def assign(root: Mapping, path: str | list[Segment], value) -> dict:
    """Return a new root with value written at path. root is left untouched."""
    segments = split(path) if isinstance(path, str) else path
    new_root = dict(root)
    parent = copy_on_write_path(new_root, segments[:-1], create=True)
    if not is_container(parent):
        raise TypeError(f"cannot assign {join(segments)!r}: parent is {parent!r}")
    _put(parent, segments[-1], value)
    return new_root


def apply_payload(root: Mapping, payload: Mapping) -> dict:
    """Fold a commit payload (path -> value) into a copy of root."""
    new_root = dict(root)
    for key, value in payload.items():
        segments = split(key)
        if len(segments) == 1:
            new_root[segments[0]] = value
        else:
            new_root = assign(new_root, segments, value)
    return new_root


