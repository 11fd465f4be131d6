"""Tests for the CSV tokenizer, header/row checks and the CSV writer."""
import pytest

from app.schemas.imports import CSV_COLUMNS, RowKind
from app.services.csv_codec import CSVParseError, export_csv, parse_csv, render_csv

from fakes import csv_row, make_csv, minimal_valid_rows, sample_snapshot

HEADER = ",".join(CSV_COLUMNS)


# ─── Happy path ───────────────────────────────────────────────────────────────

def test_parse_minimal_file_preserves_order_and_line_numbers():
    rows = parse_csv(make_csv(*minimal_valid_rows()))

    assert [r.type for r in rows] == [
        RowKind.universe, RowKind.phylum, RowKind.family, RowKind.group, RowKind.task,
    ]
    assert [r.row_number for r in rows] == [2, 3, 4, 5, 6]


def test_numeric_columns_are_coerced_to_int():
    task = parse_csv(make_csv(*minimal_valid_rows()))[-1]

    assert task.group_num == 1
    assert task.task_num == 1
    assert task.task_priority == 3
    assert task.display_order == ""


def test_unparseable_number_keeps_raw_string():
    text = make_csv(csv_row("task", task_priority="high", task_num="1.5"))
    row = parse_csv(text)[0]

    assert row.task_priority == "high"
    assert row.task_num == "1.5"


def test_blank_lines_are_skipped_but_counted():
    text = HEADER + "\n\n   \n" + "universe,W,Work" + "," * 13 + "\n"
    rows = parse_csv(text)

    assert len(rows) == 1
    assert rows[0].row_number == 4
    assert rows[0].universe_name == "Work"


def test_values_are_trimmed():
    text = HEADER + "\n" + "universe, W ,  Work  " + "," * 13 + "\n"
    row = parse_csv(text)[0]

    assert row.universe_code == "W"
    assert row.universe_name == "Work"


def test_leading_bom_and_crlf_are_accepted():
    text = "\ufeff" + make_csv(*minimal_valid_rows()).replace("\n", "\r\n")
    rows = parse_csv(text)

    assert len(rows) == 5
    assert rows[0].universe_code == "W"


def test_extra_columns_are_ignored():
    text = HEADER + ",notes\n" + "universe,W,Work" + "," * 13 + ",ignored\n"
    row = parse_csv(text)[0]

    assert row.universe_name == "Work"
    assert "notes" not in row.model_dump()


@pytest.mark.parametrize(
    "value",
    [
        "Research, Development",
        'Say "hello"',
        '"quoted", with comma',
        '""',
        "a,b,c,\"d\"",
    ],
)
def test_quoted_fields_recover_exact_value(value):
    text = make_csv(csv_row("universe", universe_code="W", universe_name=value))
    row = parse_csv(text)[0]

    assert row.universe_name == value


def test_hand_written_escaped_quotes():
    text = HEADER + "\n" + 'task,W,Work,R,Research,,,1,G,1,"Fix ""the"" bug, now",P,3,WR-01.01,,\n'
    row = parse_csv(text)[0]

    assert row.task_title == 'Fix "the" bug, now'
    assert row.base_code == "WR-01.01"


# ─── Structural errors ────────────────────────────────────────────────────────

@pytest.mark.parametrize("text", ["", "\n\n", "   \n  \n"])
def test_empty_file_is_rejected(text):
    with pytest.raises(CSVParseError, match="CSV file is empty"):
        parse_csv(text)


def test_missing_headers_are_named_exactly():
    columns = [c for c in CSV_COLUMNS if c not in ("base_code", "id")]
    text = ",".join(columns) + "\n"

    with pytest.raises(CSVParseError) as exc_info:
        parse_csv(text)

    assert str(exc_info.value) == "Missing required columns: base_code, id"


def test_quoted_header_names_are_accepted():
    text = ",".join(f'"{c}"' for c in CSV_COLUMNS) + "\n"

    assert parse_csv(text) == []


def test_column_count_mismatch_reports_line():
    text = HEADER + "\nuniverse,W,Work\n"

    with pytest.raises(CSVParseError) as exc_info:
        parse_csv(text)

    assert str(exc_info.value) == "Row 2: Expected 16 columns, got 3"
    assert exc_info.value.row == 2


def test_unknown_type_is_rejected():
    text = make_csv(csv_row("universe", universe_code="W", universe_name="Work"), csv_row("planet"))

    with pytest.raises(CSVParseError, match=r"Row 3: Invalid type 'planet'"):
        parse_csv(text)


def test_unterminated_quote_is_a_parse_error():
    text = HEADER + '\nuniverse,W,"Work' + "," * 13 + "\n"

    with pytest.raises(CSVParseError):
        parse_csv(text)


# ─── Writer ───────────────────────────────────────────────────────────────────

def test_render_quotes_only_when_needed():
    text = render_csv([csv_row("universe", universe_code="W", universe_name='Work, "main"')])
    lines = text.splitlines()

    assert lines[0] == HEADER
    assert lines[1].startswith('universe,W,"Work, ""main""",')


def test_export_lists_kinds_in_hierarchy_order():
    rows = parse_csv(export_csv(sample_snapshot()))

    kinds = [r.type.value for r in rows]
    assert kinds == ["universe", "phylum", "family", "group", "group", "task", "task", "task"]
    task = next(r for r in rows if r.base_code == "WRA-01.02")
    assert task.task_title == 'Write, then "review"'
    assert task.id == "t-2"
