"""Validation and normalization of batch translation responses.

Localization values arrive either as a plain string or as an object with a
``text`` string. Both are reduced to trimmed ``str`` here; nothing past this
module sees the raw shapes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import (
    DuplicateLabelInResponse,
    IncompleteTranslation,
    MalformedResponse,
    MissingLocalizationObject,
)
from .models import NormalizedResult, RequestIndex, TranslationRequest
from .store import cell_text

LOGGER = logging.getLogger(__name__)


def normalize_text(value: Any) -> Optional[str]:
    """Return the trimmed text of a localization value, or None if unusable."""

    if isinstance(value, str):
        text = value.strip()
    elif isinstance(value, Mapping) and isinstance(value.get("text"), str):
        text = value["text"].strip()
    else:
        return None
    return text or None


def _index_items(items: List[Any], index: RequestIndex) -> Dict[str, Mapping[str, Any]]:
    by_label: Dict[str, Mapping[str, Any]] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        label = cell_text(item.get("label"))
        if not label:
            continue
        if label in by_label:
            entry = index.get(label)
            raise DuplicateLabelInResponse(
                label, row_number=entry.row_number if entry is not None else None
            )
        by_label[label] = item
    return by_label


def validate_batch_response(
    response: Any,
    index: RequestIndex,
    batch: Sequence[TranslationRequest] = (),
) -> List[NormalizedResult]:
    """Check a parsed response and return complete results for its labels."""

    if not isinstance(response, Mapping) or not isinstance(response.get("data"), list):
        raise MalformedResponse('Response does not contain a "data" array')

    by_label = _index_items(response["data"], index)

    for label in by_label:
        if label not in index:
            LOGGER.warning("Response contains unrequested label '%s'; ignoring", label)
    for request in batch:
        if request.label not in by_label:
            LOGGER.warning("Label '%s' was requested but is absent from the response", request.label)

    results: List[NormalizedResult] = []
    for label in index:
        item = by_label.get(label)
        if item is None:
            continue

        entry = index.get(label)
        localization = item.get("localization")
        if not isinstance(localization, Mapping):
            raise MissingLocalizationObject(
                f'label "{label}": response item has no "localization" object',
                row_number=entry.row_number,
                note='Response has no "localization" object',
            )

        normalized: Dict[str, str] = {}
        missing: List[str] = []
        for code in (target.code for target in entry.targets):
            text = normalize_text(localization.get(code))
            if text is None:
                missing.append(code)
            else:
                normalized[code] = text

        if missing:
            raise IncompleteTranslation(label, missing, row_number=entry.row_number)

        results.append(
            NormalizedResult(label=label, localization=normalized, row_number=entry.row_number)
        )

    return results
