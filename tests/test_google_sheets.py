"""Tests for the Google Sheets store (API service mocked)."""

from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError as GoogleHttpError

from sheet_localizer.config import SheetsConfig
from sheet_localizer.errors import SheetStructureError, StoreError
from sheet_localizer.google_sheets import GoogleSheetStore, column_letter
from sheet_localizer.models import RGBColor


def _store(service, gid=7):
    conf = SheetsConfig(
        credentials_file="creds.json", spreadsheet_id="sid", sheet_name="Strings", sheet_gid=gid
    )
    return GoogleSheetStore(conf, service=service)


def _google_error(status):
    resp = MagicMock()
    resp.status = status
    resp.reason = "error"
    return GoogleHttpError(resp, b"{}")


class TestColumnLetter:
    @pytest.mark.parametrize("number, letters", [(1, "A"), (26, "Z"), (27, "AA"), (52, "AZ"), (703, "AAA")])
    def test_conversion(self, number, letters):
        assert column_letter(number) == letters

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            column_letter(0)


class TestGoogleSheetStore:
    def test_read_values(self):
        service = MagicMock()
        service.spreadsheets().values().get().execute.return_value = {"values": [["label"]]}
        assert _store(service).read_values() == [["label"]]
        service.spreadsheets().values().get.assert_called_with(spreadsheetId="sid", range="'Strings'")

    def test_read_cells_fills_missing_values(self):
        service = MagicMock()
        service.spreadsheets().values().batchGet().execute.return_value = {
            "valueRanges": [{"range": "'Strings'!E2", "values": [["Hola"]]}, {"range": "'Strings'!F2"}]
        }
        assert _store(service).read_cells([(2, 5), (2, 6)]) == ["Hola", ""]
        service.spreadsheets().values().batchGet.assert_called_with(
            spreadsheetId="sid", ranges=["'Strings'!E2", "'Strings'!F2"]
        )

    def test_write_cells_uses_raw_input(self):
        service = MagicMock()
        _store(service).write_cells({(3, 6): "=not a formula", (2, 5): "Hola"})
        body = service.spreadsheets().values().batchUpdate.call_args.kwargs["body"]
        assert body["valueInputOption"] == "RAW"
        assert [item["range"] for item in body["data"]] == ["'Strings'!E2", "'Strings'!F3"]
        assert body["data"][1]["values"] == [["=not a formula"]]

    def test_set_note(self):
        service = MagicMock()
        _store(service).set_note((3, 1), "Duplicate label")
        request = service.spreadsheets().batchUpdate.call_args.kwargs["body"]["requests"][0]
        assert request["updateCells"]["range"] == {
            "sheetId": 7,
            "startRowIndex": 2,
            "endRowIndex": 3,
            "startColumnIndex": 0,
            "endColumnIndex": 1,
        }
        assert request["updateCells"]["rows"] == [{"values": [{"note": "Duplicate label"}]}]

    def test_set_and_reset_background(self):
        service = MagicMock()
        store = _store(service)

        store.set_background([(2, 5)], RGBColor(255, 0, 51))
        request = service.spreadsheets().batchUpdate.call_args.kwargs["body"]["requests"][0]
        assert request["repeatCell"]["cell"] == {
            "userEnteredFormat": {"backgroundColor": {"red": 1.0, "green": 0.0, "blue": 0.2}}
        }

        store.set_background([(2, 5)], None)
        request = service.spreadsheets().batchUpdate.call_args.kwargs["body"]["requests"][0]
        assert request["repeatCell"]["cell"] == {}
        assert request["repeatCell"]["fields"] == "userEnteredFormat.backgroundColor"

    def test_find_cells_with_background(self):
        service = MagicMock()
        service.spreadsheets().get().execute.return_value = {
            "sheets": [
                {
                    "data": [
                        {
                            "rowData": [
                                {"values": [{}, {}]},
                                {
                                    "values": [
                                        {},
                                        {"userEnteredFormat": {"backgroundColor": {"red": 1, "blue": 0.2}}},
                                        {"userEnteredFormat": {"backgroundColor": {"red": 1}}},
                                    ]
                                },
                            ]
                        }
                    ]
                }
            ]
        }
        assert _store(service).find_cells_with_background(RGBColor(255, 0, 51)) == [(2, 2)]

    def test_sheet_id_lookup_by_name(self):
        service = MagicMock()
        service.spreadsheets().get().execute.return_value = {
            "sheets": [
                {"properties": {"sheetId": 1, "title": "Other"}},
                {"properties": {"sheetId": 42, "title": "Strings"}},
            ]
        }
        store = _store(service, gid=None)
        store.set_note((2, 1), "x")
        request = service.spreadsheets().batchUpdate.call_args.kwargs["body"]["requests"][0]
        assert request["updateCells"]["range"]["sheetId"] == 42

    def test_unknown_sheet_name(self):
        service = MagicMock()
        service.spreadsheets().get().execute.return_value = {"sheets": []}
        with pytest.raises(SheetStructureError):
            _store(service, gid=None).set_note((2, 1), "x")

    @patch("sheet_localizer.google_sheets.time.sleep")
    def test_retries_transient_errors(self, mock_sleep):
        service = MagicMock()
        service.spreadsheets().values().get().execute.side_effect = [
            _google_error(503),
            {"values": []},
        ]
        assert _store(service).read_values() == []
        mock_sleep.assert_called_once_with(1.0)

    @patch("sheet_localizer.google_sheets.time.sleep")
    def test_does_not_retry_client_errors(self, mock_sleep):
        service = MagicMock()
        service.spreadsheets().values().get().execute.side_effect = _google_error(403)
        with pytest.raises(StoreError, match="fetch sheet values") as info:
            _store(service).read_values()
        assert isinstance(info.value.__cause__, GoogleHttpError)
        mock_sleep.assert_not_called()

    @patch("sheet_localizer.google_sheets.time.sleep")
    def test_gives_up_after_repeated_transient_errors(self, mock_sleep):
        service = MagicMock()
        service.spreadsheets().values().get().execute.side_effect = _google_error(503)
        with pytest.raises(StoreError, match="after 4 attempts"):
            _store(service).read_values()
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 4.0]

    @patch("sheet_localizer.google_sheets.Credentials.from_service_account_file")
    def test_unreadable_credentials(self, mock_from_file):
        mock_from_file.side_effect = FileNotFoundError("creds.json")
        conf = SheetsConfig(credentials_file="creds.json", spreadsheet_id="sid", sheet_name="Strings")
        with pytest.raises(StoreError, match="credentials"):
            GoogleSheetStore(conf).read_values()
