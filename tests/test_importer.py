import pytest

from paleocore.errors import AIDisabledError, AIServiceError, DataImportError, ValidationError
from paleocore.importer import (
    format_from_path,
    import_into_section,
    parse_rows,
    propose_mapping,
    read_headers,
    read_table,
)
from tests.conftest import make_section


class MappingAI:
    def __init__(self, mapping=None, error=None):
        self.mapping = mapping or {}
        self.error = error
        self.calls = []

    def map_headers(self, headers):
        self.calls.append(list(headers))
        if self.error is not None:
            raise self.error
        return dict(self.mapping)


CSV = "Depth_cm,d18O_permil\n120,3.45\n"


def test_csv_import_end_to_end():
    ai = MappingAI({"Depth_cm": "depth", "d18O_permil": "delta18O"})
    sec = make_section()
    updated, result, proposal = import_into_section(sec, CSV, "csv", ai, key_factory=lambda i: f"Imported-1-{i}")
    assert ai.calls == [["Depth_cm", "d18O_permil"]]
    assert proposal.mapping == {"Depth_cm": "depth", "d18O_permil": "delta18O"}
    assert updated.data_points == [{"depth": 120.0, "delta18O": 3.45, "subsection": "Imported-1-0"}]
    assert result.added == 1 and result.updated == 0
    assert updated.lab_analysis == {"delta18O": pytest.approx(3.45)}


def test_odv_comments_tabs_and_decimal_comma():
    text = "//ODV export\n//Cruise: X\nSample\tDepth [cm]\tMg/Ca\nA1\t1,5\t2,25\nA2\t\t3.5mmol\n"
    assert read_headers(text, "odv") == ["Sample", "Depth [cm]", "Mg/Ca"]
    ai = MappingAI({"Sample": "subsection", "Depth [cm]": "depth", "Mg/Ca": "mgCaRatio"})
    sec = make_section(points=[{"subsection": "A2", "depth": 7.0}])
    updated, result, _ = import_into_section(sec, text, "odv", ai)
    assert (result.added, result.updated) == (1, 1)
    by_key = {p["subsection"]: p for p in updated.data_points}
    assert by_key["A1"] == {"subsection": "A1", "depth": 1.5, "mgCaRatio": 2.25}
    assert by_key["A2"] == {"subsection": "A2", "depth": 7.0, "mgCaRatio": 3.5}


def test_no_headers_fails_before_ai_call():
    ai = MappingAI()
    with pytest.raises(DataImportError):
        import_into_section(make_section(), "", "csv", ai)
    with pytest.raises(DataImportError):
        import_into_section(make_section(), "//only comments\n", "odv", ai)
    assert ai.calls == []


def test_zero_rows_fails_before_merge():
    ai = MappingAI({})  # nothing mapped
    with pytest.raises(DataImportError, match="No valid data rows"):
        import_into_section(make_section(), CSV, "csv", ai)


def test_ai_failure_falls_back_to_skip_all():
    prop = propose_mapping(["a", "b"], MappingAI(error=AIServiceError("boom")))
    assert prop.mapping == {"a": None, "b": None}
    assert prop.note == "boom"
    prop = propose_mapping(["a"], MappingAI(error=AIDisabledError()))
    assert prop.mapping == {"a": None}
    assert "disabled" in prop.note


def test_unknown_keys_coerced_and_overrides_applied():
    ai = MappingAI({"Depth": "depth", "Weird": "salinity", "Age": "age"})
    prop = propose_mapping(["Depth", "Weird", "Age"], ai, overrides={"Age": None, "Weird": "temperature"})
    assert prop.mapping == {"Depth": "depth", "Weird": "temperature", "Age": None}
    with pytest.raises(ValidationError):
        propose_mapping(["Depth"], ai, overrides={"Depth": "nonsense"})
    with pytest.raises(ValidationError):
        propose_mapping(["Depth"], ai, overrides={"Other": "depth"})


def test_parse_rows_skips_empty_and_unparseable():
    frame = read_table("id,d18o,note\nx1,,hello\n,abc,\n,2.5,\n", "csv")
    rows = parse_rows(frame, {"id": "subsection", "d18o": "delta18O", "note": None})
    assert rows == [{"subsection": "x1"}, {"delta18O": 2.5}]


def test_format_from_path():
    assert format_from_path("data/core.CSV") == "csv"
    assert format_from_path("odv_export.txt") == "odv"
    with pytest.raises(ValidationError):
        format_from_path("core.xlsx")


def test_duplicate_headers_are_rejected():
    with pytest.raises(DataImportError, match="Duplicate column headers: Depth"):
        read_table("Depth,d18O,Depth \n1,2,3\n", "csv")
    with pytest.raises(DataImportError, match="Duplicate"):
        read_headers("//ODV\nA\tA\n1\t2\n", "odv")
