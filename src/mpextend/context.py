"""Context — scratch key/value store threaded through one definition build.

Installers write merged artifacts here during `install` and read them back in
`definition_filter`. Last writer wins; ordering is the pipeline's business.
"""

from __future__ import annotations

from typing import Any, Iterator


class Context:
    """Ordered string-keyed store. Lives for one build, then is dropped."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._entries

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Context({', '.join(self._entries)})"
