"""
Shared mutable state store with journaled, all-or-nothing transactions.

Every component (reward engine, position ledger, tokens) keeps its records in
named tables of one `StateStore`. Public operations run inside
`store.transaction()`: writes are journaled, and any exception escaping the
outermost transaction restores every table and the event log to the snapshot
taken when it began. Nested transactions take a savepoint in the same journal,
so a nested action that succeeded is still undone when the action that called
it fails.

Bookkeeping is O(1) per write; a rollback is O(writes in the transaction).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Tuple

_log = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class LogRecord:
    """One entry of the append-only notification log."""

    seq: int
    name: str
    args: Tuple[Tuple[str, Any], ...]

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.args)


class StateStore:
    """
    Named tables of `key -> value` plus an append-only event log.

    Absent keys read as the caller-supplied default; tables are created on
    first write. Values should be immutable (ints, frozen dataclasses) so the
    journal can restore them by reference.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[Hashable, Any]] = {}
        self._events: List[LogRecord] = []
        self._journal: List[Tuple[str, Hashable, Any]] | None = None
        self._depth = 0

    # -- reads ---------------------------------------------------------------

    def get(self, table: str, key: Hashable, default: Any = None) -> Any:
        return self._tables.get(table, {}).get(key, default)

    def items(self, table: str) -> Dict[Hashable, Any]:
        # Shallow copy: callers may iterate while writing.
        return dict(self._tables.get(table, {}))

    @property
    def events(self) -> Tuple[LogRecord, ...]:
        return tuple(self._events)

    def events_named(self, name: str) -> List[LogRecord]:
        return [e for e in self._events if e.name == name]

    # -- writes --------------------------------------------------------------

    def set(self, table: str, key: Hashable, value: Any) -> None:
        rows = self._tables.setdefault(table, {})
        self._record(table, key, rows.get(key, _MISSING))
        rows[key] = value

    def delete(self, table: str, key: Hashable) -> None:
        rows = self._tables.get(table)
        if rows is None or key not in rows:
            return
        self._record(table, key, rows[key])
        del rows[key]

    def emit(self, name: str, **args: Any) -> LogRecord:
        record = LogRecord(seq=len(self._events), name=name, args=tuple(args.items()))
        self._events.append(record)
        return record

    def _record(self, table: str, key: Hashable, previous: Any) -> None:
        if self._journal is not None:
            self._journal.append((table, key, previous))

    # -- transactions --------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["StateStore"]:
        """
        Run a block atomically.

        The outermost call opens the journal; inner calls take a savepoint in
        it. On any exception the writes made since the matching savepoint are
        undone and the exception is re-raised.
        """
        if self._journal is None:
            self._journal = []
        savepoint = len(self._journal)
        events_mark = len(self._events)
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._rollback(savepoint, events_mark)
            raise
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._journal = None

    def _rollback(self, savepoint: int, events_mark: int) -> None:
        journal = self._journal or []
        undo = journal[savepoint:]
        for table, key, previous in reversed(undo):
            rows = self._tables.setdefault(table, {})
            if previous is _MISSING:
                rows.pop(key, None)
            else:
                rows[key] = previous
        del journal[savepoint:]
        dropped = len(self._events) - events_mark
        del self._events[events_mark:]
        _log.warning("transaction rolled back: %d writes, %d events discarded", len(undo), dropped)

    # -- export --------------------------------------------------------------

    def dump(self) -> Mapping[str, Dict[Hashable, Any]]:
        return {name: dict(rows) for name, rows in self._tables.items() if rows}

    def __repr__(self) -> str:
        sizes = ", ".join(f"{k}={len(v)}" for k, v in sorted(self._tables.items()))
        return f"StateStore({sizes})"
