"""Parsing of a single model reply for one translation request."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping

from .errors import MalformedResponse, MissingTranslation
from .models import TranslationRequest
from .planner import LANGUAGE_CODE_RE
from .validation import normalize_text

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json(raw: Any) -> Any:
    """Return the JSON value carried by ``raw``.

    ``raw`` may already be parsed, or be text wrapped in a code fence and
    carrying trailing commas.
    """

    if raw is None:
        raise MalformedResponse("Empty response content")
    if isinstance(raw, (Mapping, list)):
        return raw

    text = str(raw).strip()
    if not text:
        raise MalformedResponse("Blank response content")

    fence = _FENCE_RE.search(text)
    core = fence.group(1).strip() if fence else text
    try:
        return json.loads(core)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_TRAILING_COMMA_RE.sub(r"\1", core))
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Cannot parse JSON from response: {core[:400]}") from exc


def parse_item_reply(raw: Any, request: TranslationRequest) -> Dict[str, Any]:
    """Validate one reply and return ``{"label", "localization": {code: {"text"}}}``."""

    reply = extract_json(raw)
    if not isinstance(reply, Mapping):
        raise MalformedResponse("Response is not an object")

    label = reply.get("label")
    if not label:
        raise MalformedResponse("Missing label in response")
    if label != request.label:
        raise MalformedResponse(f'Label mismatch. Expected "{request.label}" got "{label}"')

    localization = reply.get("localization")
    if not isinstance(localization, Mapping):
        raise MalformedResponse('"localization" must be an object')

    output: Dict[str, Dict[str, str]] = {}
    for code in request.languages:
        if code not in localization:
            raise MissingTranslation(f'Missing locale "{code}" for label "{label}"')
        text = normalize_text(localization[code])
        if text is None:
            raise MissingTranslation(
                f'Locale "{code}" for label "{label}" is blank or has an invalid shape'
            )
        output[code] = {"text": text}

    for code, value in localization.items():
        if code in output or not LANGUAGE_CODE_RE.match(str(code)):
            continue
        text = normalize_text(value)
        if text is not None:
            output[code] = {"text": text}

    return {"label": request.label, "localization": output}
