"""Shared test fixtures for sheet_localizer tests."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from sheet_localizer.api_client import TranslationClient
from sheet_localizer.config import AppConfig
from sheet_localizer.models import Cell, RGBColor, TranslationRequest
from sheet_localizer.store import TabularStore


class MemoryStore(TabularStore):
    """In-memory grid recording every side effect."""

    def __init__(self, rows: List[List[Any]]) -> None:
        self.rows = [list(row) for row in rows]
        self.notes: Dict[Cell, str] = {}
        self.backgrounds: Dict[Cell, RGBColor] = {}
        self.writes: List[Dict[Cell, str]] = []
        self.statuses: List[str] = []
        self.before_write = None  # optional hook(store) run before write_cells

    def value(self, row_number: int, column_number: int) -> Any:
        row = self.rows[row_number - 1] if row_number - 1 < len(self.rows) else []
        return row[column_number - 1] if column_number - 1 < len(row) else ""

    def set_value(self, row_number: int, column_number: int, value: Any) -> None:
        while len(self.rows) < row_number:
            self.rows.append([])
        row = self.rows[row_number - 1]
        while len(row) < column_number:
            row.append("")
        row[column_number - 1] = value

    def read_values(self) -> List[List[Any]]:
        return [list(row) for row in self.rows]

    def read_cells(self, cells: Sequence[Cell]) -> List[Any]:
        if self.before_write is not None:
            self.before_write(self)
        return [self.value(*cell) for cell in cells]

    def write_cells(self, updates: Mapping[Cell, str]) -> None:
        self.writes.append(dict(updates))
        for (row_number, column_number), value in updates.items():
            self.set_value(row_number, column_number, value)

    def set_note(self, cell: Cell, note: str) -> None:
        self.notes[cell] = note

    def set_background(self, cells: Sequence[Cell], color: Optional[RGBColor]) -> None:
        for cell in cells:
            if color is None:
                self.backgrounds.pop(cell, None)
            else:
                self.backgrounds[cell] = color

    def find_cells_with_background(self, color: RGBColor) -> List[Cell]:
        return sorted(cell for cell, value in self.backgrounds.items() if value == color)

    def show_status(self, message: str) -> None:
        self.statuses.append(message)

    @property
    def written_cells(self) -> int:
        return sum(len(batch) for batch in self.writes)


class ScriptedClient(TranslationClient):
    """Returns queued responses, or echoes translations when the queue is empty."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        super().__init__(max_retries=0)
        self.responses = list(responses or [])
        self.batches: List[List[TranslationRequest]] = []

    def _send(self, batch: Sequence[TranslationRequest]) -> Any:
        self.batches.append(list(batch))
        if self.responses:
            return self.responses.pop(0)
        return {
            "data": [
                {
                    "label": request.label,
                    "localization": {code: {"text": f"{code}:{request.source_text}"} for code in request.languages},
                }
                for request in batch
            ]
        }


HEADER = ["label", "description", "meta", "en", "es", "de"]


@pytest.fixture
def store_factory():
    def _make(*rows: List[Any], header: Optional[List[str]] = None) -> MemoryStore:
        return MemoryStore([list(header or HEADER), *[list(row) for row in rows]])

    return _make


@pytest.fixture
def make_config():
    def _make(**overrides: Any) -> AppConfig:
        data: Dict[str, Any] = {"api": {"endpoint": "https://example.test/translate"}}
        data.update(overrides)
        return AppConfig.model_validate(data)

    return _make
