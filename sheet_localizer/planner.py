from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .config import ColumnsConfig
from .errors import DuplicateLabelError, MetaParseError, SheetStructureError
from .models import LanguageColumn, RequestIndex, RequestTarget, SheetRow, TranslationRequest
from .store import cell_text

LOGGER = logging.getLogger(__name__)

LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2,3}([_-][A-Z]{2})?$")


@dataclass(frozen=True, slots=True)
class HeaderIndex:
    label: int
    description: int
    meta: int
    source: int  # all zero-based


@dataclass(slots=True)
class RequestPlan:
    header: HeaderIndex
    languages: List[LanguageColumn]
    requests: List[TranslationRequest]
    index: RequestIndex


def _normalize_header(header: Any) -> str:
    return cell_text(header).lower()


def normalize_language_code(raw: str) -> str:
    parts = re.split(r"[_-]", raw.strip())
    if len(parts) == 1:
        return parts[0].lower()
    return f"{parts[0].lower()}_{parts[1].upper()}"


def index_header(header: Sequence[Any], columns: ColumnsConfig) -> HeaderIndex:
    header_map: Dict[str, int] = {}
    for idx, name in enumerate(header):
        header_map.setdefault(_normalize_header(name), idx)

    positions: Dict[str, int] = {}
    for field_name in ("label", "description", "meta", "source"):
        column_name = getattr(columns, field_name)
        key = _normalize_header(column_name)
        if key not in header_map:
            raise SheetStructureError(
                f'Header is missing the mandatory column "{column_name}"'
            )
        positions[field_name] = header_map[key]
    return HeaderIndex(**positions)


def detect_language_columns(header: Sequence[Any], start_from: int) -> List[LanguageColumn]:
    """Return language-coded header cells at or after ``start_from``."""

    result: List[LanguageColumn] = []
    seen: Dict[str, int] = {}
    for idx in range(start_from, len(header)):
        raw = cell_text(header[idx])
        if not raw or not LANGUAGE_CODE_RE.match(raw):
            continue
        code = normalize_language_code(raw)
        if code in seen:
            LOGGER.warning(
                "Header '%s' in column %s repeats language '%s' (column %s); ignoring",
                raw,
                idx + 1,
                code,
                seen[code] + 1,
            )
            continue
        seen[code] = idx
        result.append(LanguageColumn(code=code, index=idx))
    return result


def parse_meta(value: Any, row_number: int, column_number: int) -> Any:
    text = cell_text(value)
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MetaParseError(
            f"Row {row_number}: meta is not valid JSON ({exc.msg})",
            row_number=row_number,
            column_number=column_number,
            note="meta: invalid JSON",
        ) from exc


def _empty_targets(
    row: Sequence[Any], languages: Sequence[LanguageColumn]
) -> Tuple[Tuple[str, ...], Tuple[RequestTarget, ...]]:
    codes: List[str] = []
    targets: List[RequestTarget] = []
    for language in languages:
        current = row[language.index] if language.index < len(row) else None
        if cell_text(current) == "":
            codes.append(language.code)
            targets.append(RequestTarget(code=language.code, column_number=language.column_number))
    return tuple(codes), tuple(targets)


def plan_requests(
    values: List[List[Any]],
    columns: ColumnsConfig,
    header_row: int = 1,
) -> RequestPlan:
    """Build one request per row that still has empty target cells."""

    header_idx = header_row - 1
    if len(values) < header_idx + 2:
        raise SheetStructureError("Sheet is empty or has no data rows")

    header = values[header_idx]
    header_index = index_header(header, columns)
    languages = detect_language_columns(header, header_index.source + 1)
    if not languages:
        raise SheetStructureError(
            f'No language columns found after "{columns.source}"'
        )
    LOGGER.debug("Detected language columns: %s", ", ".join(lang.code for lang in languages))

    requests: List[TranslationRequest] = []
    index = RequestIndex()
    seen_labels: Dict[str, int] = {}

    for absolute_idx in range(header_idx + 1, len(values)):
        row = values[absolute_idx]
        row_number = absolute_idx + 1

        def _get(idx: int) -> str:
            return cell_text(row[idx]) if idx < len(row) else ""

        label = _get(header_index.label)
        source_text = _get(header_index.source)
        if not label or not source_text:
            continue

        if label in seen_labels:
            raise DuplicateLabelError(
                label,
                row_number=row_number,
                column_number=header_index.label + 1,
            )
        seen_labels[label] = row_number

        meta_value = row[header_index.meta] if header_index.meta < len(row) else None
        sheet_row = SheetRow(
            label=label,
            source_text=source_text,
            description=_get(header_index.description),
            meta=parse_meta(meta_value, row_number, header_index.meta + 1),
            row_number=row_number,
        )

        codes, targets = _empty_targets(row, languages)
        if not codes:
            LOGGER.debug("Row %s (%s) is fully localized; skipping", row_number, label)
            continue

        request = TranslationRequest(
            label=sheet_row.label,
            source_text=sheet_row.source_text,
            description=sheet_row.description,
            meta=sheet_row.meta,
            languages=codes,
        )
        requests.append(request)
        index.register(request, row_number, targets)

    return RequestPlan(header=header_index, languages=languages, requests=requests, index=index)
