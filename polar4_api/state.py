from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional

from .errors import LoadError
from .tables import InMemoryTable

logger = logging.getLogger(__name__)


class LoadState(str, enum.Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ServiceState:
    """
    Process-wide load state for the server variant.

    Moves LOADING -> READY or LOADING -> FAILED exactly once; FAILED is
    terminal. The table is only exposed once READY.
    """

    def __init__(self):
        self.state = LoadState.LOADING
        self.started_at = time.monotonic()
        self.error: Optional[str] = None
        self._table: Optional[InMemoryTable] = None

    @property
    def ready(self) -> bool:
        return self.state is LoadState.READY

    @property
    def table(self) -> Optional[InMemoryTable]:
        return self._table if self.ready else None

    @property
    def postcodes_loaded(self) -> int:
        return len(self._table) if self.ready else 0

    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    def load(self, loader: Callable[[], InMemoryTable]) -> InMemoryTable:
        if self.state is not LoadState.LOADING:
            raise RuntimeError(f"table already {self.state.value}")

        try:
            table = loader()
        except LoadError as exc:
            self.state = LoadState.FAILED
            self.error = str(exc)
            logger.error("Failed to load postcode data: %s", exc)
            raise

        self._table = table
        self.state = LoadState.READY
        return table
