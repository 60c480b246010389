"""Contract for the tabular store the pipeline reads from and writes to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence

from .models import Cell, RGBColor


def cell_text(value: Any) -> str:
    """Return the trimmed text form of a cell value; ``None`` becomes ''."""

    if value is None:
        return ""
    return str(value).strip()


class TabularStore(ABC):
    """Row/column addressable grid. All coordinates are 1-based."""

    @abstractmethod
    def read_values(self) -> List[List[Any]]:
        """Return the whole sheet as rows of values, header row included.

        Trailing empty cells may be omitted from a row.
        """

    @abstractmethod
    def read_cells(self, cells: Sequence[Cell]) -> List[Any]:
        """Return the current value of each cell, in the given order."""

    @abstractmethod
    def write_cells(self, updates: Mapping[Cell, str]) -> None:
        """Write plain values to the given cells."""

    @abstractmethod
    def set_note(self, cell: Cell, note: str) -> None:
        ...

    @abstractmethod
    def set_background(self, cells: Sequence[Cell], color: Optional[RGBColor]) -> None:
        """Tint cells with ``color``; ``None`` resets them to the default."""

    @abstractmethod
    def find_cells_with_background(self, color: RGBColor) -> List[Cell]:
        ...

    def show_status(self, message: str) -> None:
        """Surface a transient progress message. Optional for adapters."""
