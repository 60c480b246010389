from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .config import HighlightConfig
from .highlight import DeferredTask, clear_highlight
from .models import Cell, NormalizedResult, RequestIndex
from .store import TabularStore, cell_text

LOGGER = logging.getLogger(__name__)


class WriteBackEngine:
    """Writes validated translations into cells that are still empty.

    One engine serves one run: the set of written cells is never shared.
    """

    def __init__(
        self,
        store: TabularStore,
        index: RequestIndex,
        highlight: Optional[HighlightConfig] = None,
        clear_task: Optional[DeferredTask] = None,
    ) -> None:
        self._store = store
        self._index = index
        self._highlight = highlight or HighlightConfig()
        self._clear_task = clear_task
        self._written: Set[Cell] = set()

    @property
    def cells_written(self) -> int:
        return len(self._written)

    def write(self, results: Sequence[NormalizedResult]) -> int:
        """Write one batch of results and return the number of cells written."""

        candidates: List[Tuple[Cell, str]] = []
        for result in results:
            entry = self._index.get(result.label)
            if entry is None:
                continue
            for target in entry.targets:
                if target.code not in entry.requested_languages:
                    continue
                cell = (entry.row_number, target.column_number)
                if cell in self._written:
                    continue
                candidates.append((cell, result.localization[target.code]))

        if not candidates:
            return 0

        current_values = self._store.read_cells([cell for cell, _ in candidates])
        updates: Dict[Cell, str] = {}
        for (cell, text), current in zip(candidates, current_values):
            if cell_text(current):
                LOGGER.debug("Cell R%sC%s was filled meanwhile; leaving it untouched", *cell)
                continue
            updates[cell] = text

        if not updates:
            return 0

        self._store.write_cells(updates)
        self._written.update(updates)

        color = self._highlight.rgb
        if color is not None:
            self._store.set_background(list(updates), color)
            self._schedule_clear()

        return len(updates)

    def _schedule_clear(self) -> None:
        minutes = self._highlight.auto_clear_minutes
        color = self._highlight.rgb
        if self._clear_task is None or minutes <= 0 or color is None:
            return
        self._clear_task.schedule(minutes * 60, lambda: clear_highlight(self._store, color))
