"""Workbook, CSV and SQL dump loaders."""

import pytest

from jjm_dashboard.loaders import (
    IngestError,
    load_esr_data,
    load_scheme_status,
    load_sql_dump,
    load_water_scheme_data,
)
from jjm_dashboard.loaders.sql_dump import parse_insert_statements, split_tuples, split_values
from jjm_dashboard.loaders.utils import clean_text, normalise_date, read_sheets, safe_float, yes_no_flag
from jjm_dashboard.loaders.water_scheme import normalise_village_record, sheet_water_records


def _scheme_row(sr, region, scheme_id, name, counts, status=None):
    return [sr, region, "Circle A", "Division A", "Sub Division A", "Block A", scheme_id, name, *counts, status]


# ═══════════════════════════════════════════════════════════════════════════════
# CELL HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

class TestCellHelpers:
    def test_clean_text(self):
        assert clean_text(20019176.0) == "20019176"
        assert clean_text("  Tal\u00a0 Sinnar ") == "Tal Sinnar"
        assert clean_text("N/A") is None
        assert clean_text(float("nan")) is None

    def test_safe_float(self):
        assert safe_float("1,234") == 1234.0
        assert safe_float("56 LPCD") == 56.0
        assert safe_float("=SUM(A1:A3)") is None
        assert safe_float("-") is None
        assert safe_float(True) is None

    def test_normalise_date(self):
        assert normalise_date(45726) == "2025-03-10"
        assert normalise_date("2025-03-10 00:00:00") == "2025-03-10"
        assert normalise_date("10/03/2025") == "2025-03-10"
        assert normalise_date("11-Mar") == "11-Mar"
        assert normalise_date(None) is None

    def test_yes_no_flag(self):
        assert yes_no_flag("Yes") == 1
        assert yes_no_flag("connected") == 1
        assert yes_no_flag(1) == 1
        assert yes_no_flag("No") == 0
        assert yes_no_flag(None) == 0

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(IngestError):
            read_sheets(path)


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEME STATUS
# ═══════════════════════════════════════════════════════════════════════════════

class TestSchemeStatusLoader:
    @pytest.fixture
    def workbook(self, make_workbook, scheme_header):
        return make_workbook({
            "Region - Nashik": [
                ["Jal Jeevan Mission - Scheme Status Report"],
                [None],
                scheme_header,
                _scheme_row(1, "Nashik", 20019176, "Retro. Bargaonpimpri & 6 VRWSS Tal Sinnar",
                            [7, 7, 7, 9, 9, 9, 9, 9, 9], "Fully Completed"),
                _scheme_row(2, "Nashik", None, "Orphan row", [1, 1, 0, 1, 1, 0, 0, 0, 0]),
                scheme_header,
                _scheme_row(3, "Nashik", "20020001", None, [0] * 9),
            ],
            "CS Region": [
                scheme_header,
                _scheme_row(1, "Aurangabad", "30030003", "RR Paithan", [5, 4, 2, 6, 5, 3, 2, 1, 4]),
            ],
            "Notes": [["Prepared by the division office"]],
        })

    def test_loads_every_region_sheet(self, workbook):
        df, skipped = load_scheme_status(workbook)
        assert skipped == 1
        assert list(df["scheme_id"]) == ["20019176", "20020001", "30030003"]

    def test_sheet_region_wins(self, workbook):
        df, _ = load_scheme_status(workbook)
        by_id = df.set_index("scheme_id")
        assert by_id.loc["20019176", "region"] == "Nashik"
        assert by_id.loc["30030003", "region"] == "Chhatrapati Sambhajinagar"

    def test_defaults_and_derivations(self, workbook):
        df, _ = load_scheme_status(workbook)
        by_id = df.set_index("scheme_id")

        completed = by_id.loc["20019176"]
        assert completed["scheme_status"] == "Fully-Completed"
        assert completed["balance_to_complete_esr"] == 0
        assert completed["agency"] == "M/S Tata Consultancy Services"

        empty = by_id.loc["20020001"]
        assert empty["scheme_name"] == "Scheme 20020001"
        assert empty["scheme_status"] == "Not-Connected"

        partial = by_id.loc["30030003"]
        assert partial["scheme_status"] == "Partial"
        assert partial["balance_to_complete_esr"] == 3
        assert partial["residual_chlorine_analyzer_connected"] == 4

    def test_csv_with_region_column(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text(
            "Region,Scheme ID,Scheme Name,Total Villages Integrated,Fully Completed Villages,"
            "Total ESR Integrated,Fully Completed ESR\n"
            "Amaravati,4001,RR Morshi,3,3,2,2\n"
            ",,,,,,\n"
        )
        df, skipped = load_scheme_status(path)
        assert skipped == 0
        assert df.iloc[0]["region"] == "Amravati"
        assert df.iloc[0]["scheme_status"] == "Fully-Completed"

    def test_no_schemes_raises(self, make_workbook):
        path = make_workbook({"Sheet1": [["Nothing to see"]]})
        with pytest.raises(IngestError):
            load_scheme_status(path)


# ═══════════════════════════════════════════════════════════════════════════════
# WATER / LPCD
# ═══════════════════════════════════════════════════════════════════════════════

WATER_HEADER = [
    "Region", "Circle", "Division", "Sub Division", "Block", "Scheme ID", "Scheme Name",
    "Village Name", "Population", "Number of ESR",
    *[f"lpcd value day{i}" for i in range(1, 8)],
    "Consistent Zero LPCD for a week",
]


def _positional_row(village, lpcd):
    return [
        "Pune", "Pune C", "Haveli D", "Haveli SD", "Haveli", "7890", "RR Wagholi", village, 1500, 1,
        *[10.5] * 6,
        *lpcd,
        *["2025-03-10"] * 6,
        45726, *["2025-03-11"] * 6,
        1, 1, 1,
    ]


class TestWaterLoader:
    def test_header_mode(self, make_workbook):
        path = make_workbook({
            "LPCD": [
                ["Village wise LPCD"],
                WATER_HEADER,
                ["Amaravati", "C", "D", "SD", "B", "1001", "RR One", "Wadi", 1200, 2, 60, 0, 40, 70, 80, 55, 20, 1],
                ["Amravati", "C", "D", "SD", "B", "1001", "RR One", None, 900, 1, 0, 0, 0, 0, 0, 0, 0, 0],
                ["Amravati", "C", "D", "SD", "B", "1002", "RR Two", "Ner", 800, 1, 0, 0, 0, 0, 0, 0, 0, 0],
            ],
        })
        df, skipped = load_water_scheme_data(path)
        assert skipped == 1
        assert len(df) == 2

        wadi = df.set_index("village_name").loc["Wadi"]
        assert wadi["region"] == "Amravati"
        assert wadi["population"] == 1200
        # counters come from the values, not the file
        assert wadi["consistent_zero_lpcd_for_a_week"] == 0
        assert wadi["below_55_lpcd_count"] == 3
        assert wadi["above_55_lpcd_count"] == 4

        ner = df.set_index("village_name").loc["Ner"]
        assert ner["consistent_zero_lpcd_for_a_week"] == 1

    def test_positional_mode(self, make_workbook):
        rows = [
            _positional_row("Wagholi", [50, 60, 70, 0, 10, 55, 56]),
            _positional_row("Lonikand", [None] * 7),
        ]
        records, mode = sheet_water_records(rows)
        assert mode == "positional"
        assert len(records) == 2

        path = make_workbook({"Sheet1": rows})
        df, skipped = load_water_scheme_data(path)
        assert skipped == 0
        wagholi = df.set_index("village_name").loc["Wagholi"]
        assert wagholi["region"] == "Pune"
        assert wagholi["lpcd_date_day1"] == "2025-03-10"
        assert wagholi["lpcd_value_day7"] == 56.0
        assert wagholi["above_55_lpcd_count"] == 4

        lonikand = df.set_index("village_name").loc["Lonikand"]
        assert lonikand["lpcd_value_day1"] is None
        assert lonikand["consistent_zero_lpcd_for_a_week"] == 0

    def test_sheet_region_beats_column(self, make_workbook):
        path = make_workbook({
            "Region - Nashik": [
                WATER_HEADER,
                ["Pune Region Office", "C", "D", "SD", "B", "1001", "RR One", "Wadi", 1200, 2, *[60] * 7, 1],
            ],
            "LPCD": [
                WATER_HEADER,
                ["Pune Region Office", "C", "D", "SD", "B", "2001", "RR Two", "Ner", 800, 1, *[60] * 7, 1],
            ],
        })
        df, _ = load_water_scheme_data(path)
        regions = df.set_index("village_name")["region"]
        assert regions["Wadi"] == "Nashik"
        # Without a region in the sheet name the column decides
        assert regions["Ner"] == "Pune"

    def test_normalise_record_prefers_sheet_region(self):
        rec = normalise_village_record(
            {"region": "Pune Region Office", "scheme_id": "1", "village_name": "Wadi"}, "Nashik"
        )
        assert rec["region"] == "Nashik"

    def test_duplicate_village_keeps_last(self, make_workbook):
        path = make_workbook({"Sheet1": [
            _positional_row("Wagholi", [1] * 7),
            _positional_row("Wagholi", [99] * 7),
        ]})
        df, _ = load_water_scheme_data(path)
        assert len(df) == 1
        assert df.iloc[0]["lpcd_value_day1"] == 99.0


# ═══════════════════════════════════════════════════════════════════════════════
# ESR
# ═══════════════════════════════════════════════════════════════════════════════

ESR_HEADER = [
    "Scheme ID", "Scheme Name", "Village Name", "ESR Name",
    "Chlorine - Connected or not", "Pressure - Connected or not", "Flow Meter - Connected or not",
    "Chlorine - Online or Offline", "Pressure - Online or Offline", "Flow Meter - Online or Offline",
    "Overall Status",
]


class TestEsrLoader:
    def test_region_sheets(self, make_workbook):
        path = make_workbook({
            "Region - Pune Data": [
                ESR_HEADER,
                ["7890", "RR Wagholi", "Wagholi", "ESR 1", "Yes", "No", "Yes", "Online", "Offline", "Online", "Offline"],
                ["7890", "RR Wagholi", "Wagholi", None, "Yes", "Yes", "Yes", None, None, None, None],
                ["7890", "RR Wagholi", "Wagholi", "ESR 2", "Yes", "Yes", "Yes", None, None, None, None],
                ["7890", "RR Wagholi", "Wagholi", "ESR 2", "Yes", "Yes", "Yes", "Online", "Online", "Online", "Online"],
            ],
            "Summary": [["Total", 5]],
            "Other": [ESR_HEADER, ["1", "S", "V", "E", "Yes", "Yes", "Yes", None, None, None, None]],
        })
        df, skipped = load_esr_data(path)
        assert skipped == 1
        assert list(df["esr_name"]) == ["ESR 1", "ESR 2"]
        assert set(df["region"]) == {"Pune"}

        esr1 = df.iloc[0]
        assert (esr1["chlorine_connected"], esr1["pressure_connected"], esr1["flow_meter_connected"]) == (1, 0, 1)
        assert df.iloc[1]["overall_status"] == "Online"

    def test_missing_statuses_are_unknown(self, make_workbook):
        path = make_workbook({"Nagpur": [
            ESR_HEADER,
            ["1", "S", "V", "E", "No", "No", "No", None, None, None, None],
        ]})
        df, _ = load_esr_data(path)
        assert df.iloc[0]["chlorine_status"] == "Unknown"
        assert df.iloc[0]["region"] == "Nagpur"


# ═══════════════════════════════════════════════════════════════════════════════
# SQL DUMP
# ═══════════════════════════════════════════════════════════════════════════════

DUMP = """-- scheme_status export
SET client_encoding = 'UTF8';
INSERT INTO public.scheme_status (region, scheme_id, scheme_name, total_villages_integrated, fully_completed_villages, total_esr_integrated, fully_completed_esr, scheme_status) VALUES
('Nashik', '20019176', 'Retro. Bargaonpimpri & 6 VRWSS, Tal Sinnar', 7, 7, 9, 9, 'Fully Completed'),
('Pune', '7890', 'Bob''s (new) scheme', 4, 1, 5, NULL, NULL),
('Pune', NULL, 'orphan', 0, 0, 0, 0, NULL);
INSERT INTO water_scheme_data (village_name) VALUES ('ignored');
"""


class TestSqlDump:
    def test_split_values(self):
        assert split_values("'x, y', NULL, 12, -3.5, abc") == ["x, y", None, 12, -3.5, "abc"]
        assert split_values("'it\\'s', 'a''b'") == ["it's", "a'b"]

    def test_split_tuples_ignores_quoted_parens(self):
        assert split_tuples("(1, 'a (b)'), (2, ')')") == ["1, 'a (b)'", "2, ')'"]

    def test_two_inserts_on_one_line(self):
        sql = (
            "INSERT INTO scheme_status (scheme_id, scheme_name) VALUES ('1', 'A; x'); "
            "INSERT INTO scheme_status (scheme_id, scheme_name) VALUES ('2', 'B');\n"
        )
        rows = parse_insert_statements(sql)
        assert [r["scheme_id"] for r in rows] == ["1", "2"]
        assert rows[0]["scheme_name"] == "A; x"

    def test_statement_without_trailing_semicolon(self):
        rows = parse_insert_statements("INSERT INTO scheme_status (scheme_id) VALUES ('9')")
        assert rows == [{"scheme_id": "9"}]

    def test_parse_only_scheme_inserts(self):
        rows = parse_insert_statements(DUMP)
        assert len(rows) == 3
        assert rows[1]["scheme_name"] == "Bob's (new) scheme"
        assert rows[0]["scheme_name"] == "Retro. Bargaonpimpri & 6 VRWSS, Tal Sinnar"

    def test_load(self, tmp_path):
        path = tmp_path / "dump.sql"
        path.write_text(DUMP)
        df, skipped = load_sql_dump(path)
        assert skipped == 1
        by_id = df.set_index("scheme_id")
        assert by_id.loc["20019176", "scheme_status"] == "Fully-Completed"
        assert by_id.loc["20019176", "no_fully_completed_esr"] == 9
        assert by_id.loc["7890", "scheme_status"] == "Partial"
        assert by_id.loc["7890", "no_fully_completed_esr"] == 0

    def test_no_inserts_raises(self, tmp_path):
        path = tmp_path / "empty.sql"
        path.write_text("SELECT 1;\n")
        with pytest.raises(IngestError):
            load_sql_dump(path)
