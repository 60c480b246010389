from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

Cell = Tuple[int, int]  # (row_number, column_number), both 1-based


@dataclass(frozen=True, slots=True)
class LanguageColumn:
    """A target-language column detected in the header row."""

    code: str
    index: int  # zero-based index inside the header row

    @property
    def column_number(self) -> int:
        return self.index + 1


@dataclass(slots=True)
class SheetRow:
    """Normalized data for a single data row of the sheet."""

    label: str
    source_text: str
    description: str
    meta: Optional[Any]
    row_number: int  # spreadsheet 1-based row number (including header)


@dataclass(frozen=True, slots=True)
class TranslationRequest:
    label: str
    source_text: str
    description: str
    meta: Optional[Any]
    languages: Tuple[str, ...]

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation of one batch item."""

        return {
            "label": self.label,
            "description": self.description,
            "meta": self.meta if self.meta is not None else {},
            "en": self.source_text,
            "languages": list(self.languages),
        }


@dataclass(frozen=True, slots=True)
class RequestTarget:
    code: str
    column_number: int


@dataclass(frozen=True, slots=True)
class RequestEntry:
    row_number: int
    requested_languages: FrozenSet[str]
    targets: Tuple[RequestTarget, ...]


class RequestIndex:
    """What was asked for during one run, keyed by label."""

    def __init__(self) -> None:
        self._entries: Dict[str, RequestEntry] = {}

    def register(
        self,
        request: TranslationRequest,
        row_number: int,
        targets: Tuple[RequestTarget, ...],
    ) -> RequestEntry:
        if request.label in self._entries:
            raise ValueError(f"Label already registered: {request.label}")
        entry = RequestEntry(
            row_number=row_number,
            requested_languages=frozenset(request.languages),
            targets=targets,
        )
        self._entries[request.label] = entry
        return entry

    def get(self, label: str) -> Optional[RequestEntry]:
        return self._entries.get(label)

    def labels(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, label: object) -> bool:
        return label in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(slots=True)
class NormalizedResult:
    """Complete, validated translations for one label."""

    label: str
    localization: Dict[str, str]
    row_number: int


@dataclass(slots=True)
class RunSummary:
    rows_requested: int = 0
    cells_written: int = 0
    batches: int = 0
    elapsed_seconds: float = 0.0
    results: List[NormalizedResult] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        return self.rows_requested == 0

    def describe(self) -> str:
        if self.nothing_to_do:
            return "No cells to localize. Done."
        return (
            f"Localization: {self.rows_requested} row(s), {self.cells_written} cell(s) "
            f"written in {self.batches} batch(es), {self.elapsed_seconds:.1f}s"
        )


@dataclass(frozen=True, slots=True)
class RGBColor:
    red: int
    green: int
    blue: int

    @classmethod
    def parse(cls, value: str) -> "RGBColor":
        """Parse an ``"R,G,B"`` triple with components in 0..255."""

        parts = [part.strip() for part in str(value).split(",")]
        if len(parts) != 3:
            raise ValueError(f"Color must be an 'R,G,B' triple, got '{value}'")
        try:
            components = [int(part) for part in parts]
        except ValueError:
            raise ValueError(f"Color components must be integers, got '{value}'") from None
        if any(not 0 <= component <= 255 for component in components):
            raise ValueError(f"Color components must be within 0..255, got '{value}'")
        return cls(*components)

    @classmethod
    def from_api(cls, payload: Dict[str, float]) -> "RGBColor":
        # The Sheets API omits zero-valued channels.
        return cls(
            round(payload.get("red", 0.0) * 255),
            round(payload.get("green", 0.0) * 255),
            round(payload.get("blue", 0.0) * 255),
        )

    def to_api(self) -> Dict[str, float]:
        return {
            "red": self.red / 255,
            "green": self.green / 255,
            "blue": self.blue / 255,
        }

    def __str__(self) -> str:
        return f"{self.red},{self.green},{self.blue}"
