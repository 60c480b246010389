from __future__ import annotations

import json
from textwrap import dedent
from typing import Dict, List, Optional

from .models import TranslationRequest

_DEFAULT_PRODUCT_CONTEXT = "a software product's user interface"


def build_output_skeleton(request: TranslationRequest) -> str:
    skeleton = {
        "label": request.label,
        "localization": {code: {"text": ""} for code in request.languages},
    }
    return json.dumps(skeleton, ensure_ascii=False, indent=2)


def build_localization_messages(
    request: TranslationRequest,
    product_context: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Compose chat messages asking a model to localize one request.

    Static instructions go into the system message so that providers can
    cache them; the row-specific data goes last.
    """

    system_prompt = dedent(
        """
        You are a professional localization engine for {product_context}.
        Localize the item provided by the user into every requested target language.

        Output requirements:
        - Return ONLY valid minified JSON: no comments, no markdown fences, no text around it.
        - All requested languages MUST be present; add no other keys.
        - Preserve ICU/intl placeholders exactly (e.g. {name}, {count}) and do not add new ones.
        - Preserve HTML-like or XML-like tags verbatim.
        - If the translation would be identical to the source, repeat the source text.
        - Keep punctuation style consistent with the source; no leading or trailing spaces.
        - Use UTF-8 characters directly, no HTML entities.

        Required JSON schema:
        {
          "label": string,
          "localization": { "<language_code>": { "text": string (non-empty) } }
        }
        """
    ).strip()
    system_prompt = system_prompt.replace(
        "{product_context}", product_context or _DEFAULT_PRODUCT_CONTEXT
    )

    lines = [f"label: {request.label}"]
    if request.description:
        lines.append(f"description: {request.description}")
    if request.meta:
        lines.append(
            "meta_placeholders (ICU / intl format): "
            + json.dumps(request.meta, ensure_ascii=False)
        )
    lines.append(f"source_text: {request.source_text}")
    lines.append(f"target_languages: {', '.join(request.languages)}")

    data_prompt = (
        "Localize the following item.\n\n"
        + "\n".join(lines)
        + "\n\nFollow this output skeleton:\n"
        + build_output_skeleton(request)
    )

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": data_prompt},
    ]
