from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import ConfigError, LocalizationError
from .google_sheets import GoogleSheetStore
from .highlight import DeferredTask, clear_highlight
from .pipeline import run_localization
from .store import TabularStore

LOGGER = logging.getLogger("sheet_localizer")


def _load_env_files(config_path: Path) -> None:
    """Load environment variables from .env files."""

    load_dotenv(override=False)

    config_env = config_path.parent / ".env"
    if config_env.exists():
        load_dotenv(dotenv_path=config_env, override=False)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fill empty translation cells of a Google Sheet through a batch translation API"
    )
    parser.add_argument("--config", required=True, help="Path to the YAML configuration file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not call the API; write simulated '[SIM:<lang>]' translations instead",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Override the number of rows sent per API request",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Exit right after the run instead of waiting for the highlight auto-clear",
    )
    parser.add_argument(
        "--clear-highlight",
        action="store_true",
        help="Remove the configured highlight color from the sheet and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def _build_store(config: AppConfig) -> TabularStore:
    if config.sheets is None:
        raise ConfigError("The 'sheets' section is required")
    return GoogleSheetStore(config.sheets)


def _settle_highlight_clear(clear_task: DeferredTask, no_wait: bool, minutes: float) -> None:
    """Wait for a pending highlight clear, or drop it when not waiting."""

    if not clear_task.pending:
        return
    if no_wait:
        LOGGER.info("Skipping highlight auto-clear; run with --clear-highlight later")
        clear_task.cancel()
        return
    LOGGER.info("Waiting %.0f minute(s) to clear the highlight (Ctrl+C to skip)", minutes)
    try:
        clear_task.wait()
    except KeyboardInterrupt:
        clear_task.cancel()
        LOGGER.info("Highlight auto-clear cancelled")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = Path(args.config).expanduser().resolve()
    _load_env_files(config_path)

    try:
        config = load_config(config_path)
        if args.dry_run or args.batch_size is not None:
            config = config.with_overrides(
                dry_run=True if args.dry_run else None,
                batch_size=args.batch_size,
            )
        store = _build_store(config)

        if args.clear_highlight:
            color = config.highlight.rgb
            if color is None:
                raise ConfigError("No highlight color configured (highlight.color)")
            clear_highlight(store, color)
            return 0
    except LocalizationError as exc:
        LOGGER.error("Localization failed: %s", exc)
        return 1

    # Cells tinted by batches written before a failure still get their clear.
    clear_task = DeferredTask("clear highlight")
    exit_code = 0
    try:
        run_localization(store, config, clear_task=clear_task)
    except LocalizationError as exc:
        LOGGER.error("Localization failed: %s", exc)
        exit_code = 1

    _settle_highlight_clear(clear_task, args.no_wait, config.highlight.auto_clear_minutes)
    return exit_code


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
