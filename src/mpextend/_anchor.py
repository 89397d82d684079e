"""Data anchor — side tables holding per-instance adapter state.

Nothing is attached to host instances. Every table is keyed by id(instance),
filled at `created` and emptied at `detached` by the installer that owns it.
"""

import itertools

# WatcherInstaller
static_watchers: dict[int, dict] = {}  # instance id -> observer key -> Watcher
dynamic_watchers: dict[int, dict] = {}  # instance id -> token -> Watcher

# ContextInstaller
runtime_contexts: dict[int, object] = {}  # instance id -> RuntimeContext

# UpdateInstaller
native_commits: dict[int, object] = {}  # instance id -> original set_data

# Token generation — itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)

