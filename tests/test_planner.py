"""Tests for request planning from the sheet grid."""

import pytest

from sheet_localizer.config import ColumnsConfig
from sheet_localizer.errors import DuplicateLabelError, MetaParseError, SheetStructureError
from sheet_localizer.planner import (
    detect_language_columns,
    index_header,
    normalize_language_code,
    plan_requests,
)

HEADER = ["label", "description", "meta", "en", "es", "de"]


class TestHeader:
    def test_index_is_case_insensitive(self):
        idx = index_header([" Label", "DESCRIPTION", "meta", "En"], ColumnsConfig())
        assert (idx.label, idx.description, idx.meta, idx.source) == (0, 1, 2, 3)

    def test_missing_mandatory_column(self):
        with pytest.raises(SheetStructureError, match="meta"):
            index_header(["label", "description", "en"], ColumnsConfig())

    def test_custom_source_column(self):
        idx = index_header(["label", "description", "meta", "source"], ColumnsConfig(source="source"))
        assert idx.source == 3


class TestLanguageColumns:
    def test_detects_codes_after_source(self):
        header = ["label", "es", "meta", "en", "ru", "es-MX", "pt_BR", "notes", "ESP", "fil"]
        columns = detect_language_columns(header, 4)
        assert [(c.code, c.index) for c in columns] == [
            ("ru", 4),
            ("es_MX", 5),
            ("pt_BR", 6),
            ("fil", 9),
        ]

    def test_repeated_code_is_ignored(self):
        columns = detect_language_columns(["es_MX", "es-MX"], 0)
        assert [c.index for c in columns] == [0]

    @pytest.mark.parametrize(
        "raw, expected",
        [("ru", "ru"), ("es-MX", "es_MX"), ("pt_BR", "pt_BR"), ("fil", "fil")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_language_code(raw) == expected


class TestPlanRequests:
    def test_one_request_per_row_with_empty_targets(self):
        values = [
            HEADER,
            ["btn1", "", "", "Save", "", ""],
            ["btn2", "Cancel button", "", "Cancel", "Cancelar", ""],
            ["btn3", "", "", "Done", "Hecho", "Fertig"],
        ]
        plan = plan_requests(values, ColumnsConfig())

        assert [r.label for r in plan.requests] == ["btn1", "btn2"]
        assert plan.requests[0].languages == ("es", "de")
        assert plan.requests[1].languages == ("de",)
        assert plan.requests[1].description == "Cancel button"

        entry = plan.index.get("btn2")
        assert entry.row_number == 3
        assert entry.requested_languages == frozenset({"de"})
        assert [(t.code, t.column_number) for t in entry.targets] == [("de", 6)]
        assert "btn3" not in plan.index

    def test_short_rows_count_as_empty(self):
        plan = plan_requests([HEADER, ["btn1", "", "", "Save"]], ColumnsConfig())
        assert plan.requests[0].languages == ("es", "de")

    def test_blank_label_or_source_is_skipped(self):
        values = [
            HEADER,
            ["", "", "", "Orphan", "", ""],
            ["btn1", "", "", "   ", "", ""],
            ["btn2", "", "", "Go", "", ""],
        ]
        plan = plan_requests(values, ColumnsConfig())
        assert [r.label for r in plan.requests] == ["btn2"]

    def test_meta_is_parsed(self):
        values = [HEADER, ["greet", "", '{"name": "Ann"}', "Hi {name}", "", ""]]
        plan = plan_requests(values, ColumnsConfig())
        assert plan.requests[0].meta == {"name": "Ann"}
        assert plan.requests[0].to_payload()["meta"] == {"name": "Ann"}

    def test_empty_meta_is_sent_as_object(self):
        plan = plan_requests([HEADER, ["btn1", "", "", "Save", "", ""]], ColumnsConfig())
        assert plan.requests[0].meta is None
        assert plan.requests[0].to_payload() == {
            "label": "btn1",
            "description": "",
            "meta": {},
            "en": "Save",
            "languages": ["es", "de"],
        }

    def test_invalid_meta_is_fatal(self):
        values = [HEADER, ["btn1", "", "{oops", "Save", "", ""]]
        with pytest.raises(MetaParseError) as info:
            plan_requests(values, ColumnsConfig())
        assert info.value.row_number == 2
        assert info.value.column_number == 3
        assert info.value.note == "meta: invalid JSON"

    def test_duplicate_label_is_fatal(self):
        values = [
            HEADER,
            ["btn1", "", "", "Save", "", ""],
            ["btn1", "", "", "Save again", "", ""],
        ]
        with pytest.raises(DuplicateLabelError) as info:
            plan_requests(values, ColumnsConfig())
        assert info.value.label == "btn1"
        assert info.value.row_number == 3
        assert info.value.column_number == 1
        assert "btn1" in info.value.note

    def test_duplicate_of_fully_localized_row_is_fatal(self):
        values = [
            HEADER,
            ["btn1", "", "", "Save", "Guardar", "Speichern"],
            ["btn1", "", "", "Save", "", ""],
        ]
        with pytest.raises(DuplicateLabelError):
            plan_requests(values, ColumnsConfig())

    def test_empty_sheet(self):
        with pytest.raises(SheetStructureError):
            plan_requests([HEADER], ColumnsConfig())
        with pytest.raises(SheetStructureError):
            plan_requests([], ColumnsConfig())

    def test_no_language_columns(self):
        values = [["label", "description", "meta", "en", "notes"], ["a", "", "", "A", ""]]
        with pytest.raises(SheetStructureError, match="language"):
            plan_requests(values, ColumnsConfig())

    def test_header_row_offset(self):
        values = [["Strings export"], HEADER, ["btn1", "", "", "Save", "", "Speichern"]]
        plan = plan_requests(values, ColumnsConfig(), header_row=2)
        assert plan.index.get("btn1").row_number == 3
        assert plan.requests[0].languages == ("es",)

    def test_nothing_to_do(self):
        values = [HEADER, ["btn1", "", "", "Save", "Guardar", "Speichern"]]
        plan = plan_requests(values, ColumnsConfig())
        assert plan.requests == []
        assert len(plan.index) == 0
