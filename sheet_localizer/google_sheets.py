from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import logging
import ssl
import time

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError as GoogleHttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .config import SheetsConfig
from .errors import SheetStructureError, StoreError
from .models import Cell, RGBColor
from .store import TabularStore

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_MAX_RETRY_ATTEMPTS = 4
_INITIAL_BACKOFF_SECONDS = 1.0
_MAX_BACKOFF_SECONDS = 8.0
_RETRYABLE_EXCEPTIONS = (ssl.SSLEOFError, HttpLib2Error)


def column_letter(column_number: int) -> str:
    """Convert a 1-based column number into A1 notation letters."""

    if column_number < 1:
        raise ValueError(f"Column numbers must be 1-based; received {column_number}")
    letters = ""
    while column_number:
        column_number, remainder = divmod(column_number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _quote_sheet_name(name: str) -> str:
    escaped = name.replace("'", "''")
    return f"'{escaped}'"


class GoogleSheetStore(TabularStore):
    """Tabular store backed by one tab of a Google spreadsheet."""

    def __init__(self, conf: SheetsConfig, service: Resource | None = None) -> None:
        self._conf = conf
        self._service = service
        self._sheet_id: Optional[int] = conf.sheet_gid

    def _service_client(self) -> Resource:
        if self._service is None:
            try:
                creds = Credentials.from_service_account_file(
                    str(self._conf.credentials_file), scopes=SCOPES
                )
            except (OSError, ValueError) as exc:
                raise StoreError(
                    f"Cannot load service account credentials from {self._conf.credentials_file}: {exc}"
                ) from exc
            self._service = build("sheets", "v4", credentials=creds)
        return self._service

    def a1(self, cell: Cell) -> str:
        row_number, column_number = cell
        return f"{_quote_sheet_name(self._conf.sheet_name)}!{column_letter(column_number)}{row_number}"

    # Reading -----------------------------------------------------------------
    def read_values(self) -> List[List[Any]]:
        def _build_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .values()
                .get(
                    spreadsheetId=self._conf.spreadsheet_id,
                    range=_quote_sheet_name(self._conf.sheet_name),
                )
            )

        result = self._execute_with_retry(_build_request, operation="fetch sheet values")
        return result.get("values", [])

    def read_cells(self, cells: Sequence[Cell]) -> List[Any]:
        if not cells:
            return []
        ranges = [self.a1(cell) for cell in cells]

        def _build_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .values()
                .batchGet(spreadsheetId=self._conf.spreadsheet_id, ranges=ranges)
            )

        result = self._execute_with_retry(_build_request, operation="read target cells")
        value_ranges = result.get("valueRanges", [])
        values: List[Any] = []
        for idx in range(len(cells)):
            block = value_ranges[idx].get("values", []) if idx < len(value_ranges) else []
            values.append(block[0][0] if block and block[0] else "")
        return values

    def find_cells_with_background(self, color: RGBColor) -> List[Cell]:
        def _build_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .get(
                    spreadsheetId=self._conf.spreadsheet_id,
                    ranges=[_quote_sheet_name(self._conf.sheet_name)],
                    includeGridData=True,
                    fields=(
                        "sheets(data(startRow,startColumn,"
                        "rowData(values(userEnteredFormat(backgroundColor)))))"
                    ),
                )
            )

        result = self._execute_with_retry(_build_request, operation="read cell backgrounds")
        matches: List[Cell] = []
        for sheet in result.get("sheets", []):
            for grid in sheet.get("data", []):
                start_row = grid.get("startRow", 0)
                start_column = grid.get("startColumn", 0)
                for row_offset, row_data in enumerate(grid.get("rowData", [])):
                    for col_offset, cell_data in enumerate(row_data.get("values", [])):
                        background = cell_data.get("userEnteredFormat", {}).get("backgroundColor")
                        if background is None:
                            continue
                        if RGBColor.from_api(background) == color:
                            matches.append(
                                (start_row + row_offset + 1, start_column + col_offset + 1)
                            )
        return matches

    # Writing -----------------------------------------------------------------
    def write_cells(self, updates: Mapping[Cell, str]) -> None:
        if not updates:
            return

        data = [
            {"range": self.a1(cell), "majorDimension": "ROWS", "values": [[value]]}
            for cell, value in sorted(updates.items())
        ]

        def _batch_update_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .values()
                .batchUpdate(
                    spreadsheetId=self._conf.spreadsheet_id,
                    body={"valueInputOption": "RAW", "data": data},
                )
            )

        self._execute_with_retry(_batch_update_request, operation="write translations")

    def set_note(self, cell: Cell, note: str) -> None:
        request = {
            "updateCells": {
                "range": self._grid_range(cell),
                "rows": [{"values": [{"note": note}]}],
                "fields": "note",
            }
        }
        self._batch_update([request], operation="set cell note")

    def set_background(self, cells: Sequence[Cell], color: Optional[RGBColor]) -> None:
        if not cells:
            return
        cell_format: Dict[str, Any] = {}
        if color is not None:
            cell_format = {"userEnteredFormat": {"backgroundColor": color.to_api()}}
        requests = [
            {
                "repeatCell": {
                    "range": self._grid_range(cell),
                    "cell": cell_format,
                    "fields": "userEnteredFormat.backgroundColor",
                }
            }
            for cell in cells
        ]
        self._batch_update(requests, operation="set cell backgrounds")

    def show_status(self, message: str) -> None:
        LOGGER.info("%s", message)

    # Helpers -----------------------------------------------------------------
    def _grid_range(self, cell: Cell) -> Dict[str, int]:
        row_number, column_number = cell
        return {
            "sheetId": self._resolve_sheet_id(),
            "startRowIndex": row_number - 1,
            "endRowIndex": row_number,
            "startColumnIndex": column_number - 1,
            "endColumnIndex": column_number,
        }

    def _resolve_sheet_id(self) -> int:
        if self._sheet_id is not None:
            return self._sheet_id

        def _build_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .get(
                    spreadsheetId=self._conf.spreadsheet_id,
                    fields="sheets.properties(sheetId,title)",
                )
            )

        result = self._execute_with_retry(_build_request, operation="resolve sheet id")
        for sheet in result.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == self._conf.sheet_name:
                self._sheet_id = int(properties["sheetId"])
                return self._sheet_id
        raise SheetStructureError(f"Sheet '{self._conf.sheet_name}' not found in spreadsheet")

    def _batch_update(self, requests: List[Dict[str, Any]], *, operation: str) -> None:
        def _build_request() -> HttpRequest:
            return (
                self._service_client()
                .spreadsheets()
                .batchUpdate(
                    spreadsheetId=self._conf.spreadsheet_id,
                    body={"requests": requests},
                )
            )

        self._execute_with_retry(_build_request, operation=operation)

    # Internal ----------------------------------------------------------------
    def _execute_with_retry(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ) -> dict:
        """Execute a Sheets API request with retries for transient failures."""

        backoff = _INITIAL_BACKOFF_SECONDS
        last_exc: Exception | None = None

        for attempt in range(1, _MAX_RETRY_ATTEMPTS + 1):
            try:
                return request_builder().execute()
            except _RETRYABLE_EXCEPTIONS as exc:
                last_exc = exc
            except GoogleHttpError as exc:
                status = getattr(exc.resp, "status", None)
                if status not in _RETRYABLE_STATUS_CODES:
                    raise StoreError(f"Sheets API {operation} failed: {exc}") from exc
                last_exc = exc

            if attempt == _MAX_RETRY_ATTEMPTS:
                raise StoreError(
                    f"Sheets API {operation} failed after {attempt} attempts: {last_exc}"
                ) from last_exc

            wait_time = min(backoff, _MAX_BACKOFF_SECONDS)
            LOGGER.warning(
                "Sheets API %s failed on attempt %s/%s (%s); retrying in %.1f seconds",
                operation,
                attempt,
                _MAX_RETRY_ATTEMPTS,
                last_exc,
                wait_time,
            )
            time.sleep(wait_time)
            backoff *= 2

        raise RuntimeError("Sheets API request failed without capturing an exception")
