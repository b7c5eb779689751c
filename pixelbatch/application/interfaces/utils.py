from __future__ import annotations
from typing import Protocol
import datetime as _dt


class IClock(Protocol):
    """Provides current time for deterministic testing."""

    def now(self) -> _dt.datetime:
        ...
