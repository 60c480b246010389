from __future__ import annotations

import logging
import math
import time
from typing import Optional

from .api_client import TranslationClient, build_client
from .batching import iter_batches
from .config import AppConfig
from .errors import LocalizationError
from .highlight import DeferredTask
from .models import RunSummary
from .planner import RequestPlan, plan_requests
from .store import TabularStore
from .validation import validate_batch_response
from .writer import WriteBackEngine

LOGGER = logging.getLogger(__name__)


def _annotate(store: TabularStore, exc: LocalizationError, plan: Optional[RequestPlan]) -> None:
    if exc.row_number is None or not exc.note:
        return
    column_number = exc.column_number
    if column_number is None:
        column_number = plan.header.label + 1 if plan is not None else 1
    try:
        store.set_note((exc.row_number, column_number), exc.note)
    except Exception:
        LOGGER.exception("Failed to attach a note to row %s", exc.row_number)


def run_localization(
    store: TabularStore,
    config: AppConfig,
    *,
    client: Optional[TranslationClient] = None,
    clear_task: Optional[DeferredTask] = None,
) -> RunSummary:
    """Fill empty translation cells of ``store`` and return what was done.

    Any error aborts the run; cells written by earlier batches stay written.
    """

    started = time.monotonic()
    summary = RunSummary()
    owns_client = client is None
    if client is None:
        client = build_client(config)
    plan: Optional[RequestPlan] = None

    try:
        values = store.read_values()
        plan = plan_requests(values, config.columns, config.header_row)
        summary.rows_requested = len(plan.requests)

        if not plan.requests:
            LOGGER.info("No cells to localize")
            store.show_status(summary.describe())
            return summary

        writer = WriteBackEngine(store, plan.index, config.highlight, clear_task)
        total_batches = math.ceil(len(plan.requests) / config.batch_size)
        LOGGER.info(
            "Localizing %s row(s) in %s batch(es) of up to %s",
            len(plan.requests),
            total_batches,
            config.batch_size,
        )

        for batch in iter_batches(plan.requests, config.batch_size):
            summary.batches += 1
            store.show_status(
                f"Localization: batch {summary.batches}/{total_batches} "
                f"({batch[0].label} .. {batch[-1].label})"
            )
            response = client.translate_batch(batch)
            results = validate_batch_response(response, plan.index, batch)
            written = writer.write(results)
            summary.results.extend(results)
            summary.cells_written = writer.cells_written
            LOGGER.info(
                "Batch %s/%s: %s result(s), %s cell(s) written",
                summary.batches,
                total_batches,
                len(results),
                written,
            )
    except LocalizationError as exc:
        _annotate(store, exc, plan)
        raise
    finally:
        summary.elapsed_seconds = time.monotonic() - started
        if owns_client:
            client.close()

    store.show_status(summary.describe())
    LOGGER.info("%s", summary.describe())
    return summary
