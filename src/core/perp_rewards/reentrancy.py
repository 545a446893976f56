"""Mutual-exclusion guard for operations that call out to value transfers.

One guard per component. `hold(op)` marks the component busy for the duration
of the block and is released on every exit path; entering any guarded
operation of the same component while it is held raises `ReentrancyError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import ReentrancyError

_log = logging.getLogger(__name__)


class ReentrancyGuard:
    def __init__(self, owner: str):
        self.owner = owner
        self._active: Optional[str] = None

    @property
    def held(self) -> bool:
        return self._active is not None

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        if self.held:
            _log.warning("%s: rejected re-entry into %s during %s", self.owner, operation, self._active)
            raise ReentrancyError(f"{self.owner}: {operation} re-entered during {self._active}")
        self._active = operation
        try:
            yield
        finally:
            self._active = None
