"""Tests for the CSV import business rules.

Rows are mostly built directly as ParsedRow objects.
"""
import pytest

from app.rules.import_rules import split_issues, validate_business_rules
from app.schemas.imports import ParsedRow
from app.services.csv_codec import parse_csv

from fakes import csv_row, make_csv


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _universe(code="W", name="Work", row=2) -> ParsedRow:
    return ParsedRow(type="universe", universe_code=code, universe_name=name, row_number=row)


def _phylum(universe="W", code="R", name="Research", row=3) -> ParsedRow:
    return ParsedRow(
        type="phylum", universe_code=universe, phylum_code=code, phylum_name=name, row_number=row
    )


def _family(universe="W", phylum="R", code="A", name="Alpha", row=4) -> ParsedRow:
    return ParsedRow(
        type="family", universe_code=universe, phylum_code=phylum,
        family_code=code, family_name=name, row_number=row,
    )


def _group(num=1, name="Setup", universe="W", phylum="R", family="A", row=5) -> ParsedRow:
    return ParsedRow(
        type="group", universe_code=universe, phylum_code=phylum, family_code=family,
        group_num=num, group_name=name, row_number=row,
    )


def _task(base_code="WRA-01.01", num=1, title="Foo", status="P", priority=3,
          family="A", group_num=1, row=6) -> ParsedRow:
    return ParsedRow(
        type="task", universe_code="W", phylum_code="R", family_code=family,
        group_num=group_num, task_num=num, task_title=title, task_status=status,
        task_priority=priority, base_code=base_code, row_number=row,
    )


def _valid_rows() -> list[ParsedRow]:
    return [_universe(), _phylum(), _family(), _group(), _task()]


def _errors(rows) -> list:
    return split_issues(validate_business_rules(rows))[0]


def _warnings(rows) -> list:
    return split_issues(validate_business_rules(rows))[1]


# ─── Baseline ─────────────────────────────────────────────────────────────────

def test_valid_rows_have_no_issues():
    assert validate_business_rules(_valid_rows()) == []


def test_validation_does_not_mutate_input():
    rows = _valid_rows() + [_task(priority=9, row=7)]
    before = [r.model_dump() for r in rows]

    validate_business_rules(rows)

    assert [r.model_dump() for r in rows] == before


def test_all_violations_are_collected():
    rows = [
        _universe(code="AB", name=""),
        _task(num=0, title=" ", status="Q", priority=6, base_code="bad", row=3),
    ]
    fields = [e.field for e in _errors(rows)]

    assert fields == [
        "universe_code", "universe_name",
        "task_num", "task_title", "task_status", "task_priority", "base_code",
    ]


# ─── Universes ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("code", ["", "AB", "WRK"])
def test_universe_code_must_be_single_character(code):
    errors = _errors([_universe(code=code)])

    assert errors[0].message == f'Universe code must be single character: "{code}"'
    assert errors[0].row == 2
    assert errors[0].field == "universe_code"


def test_duplicate_universe_code():
    errors = _errors([_universe(row=2), _universe(name="Other", row=3)])

    assert len(errors) == 1
    assert errors[0].message == 'Duplicate universe code: "W"'
    assert errors[0].row == 3


def test_universe_name_required():
    errors = _errors([_universe(name="   ")])

    assert [e.message for e in errors] == ["Universe name is required"]


# ─── Phyla / families ─────────────────────────────────────────────────────────

def test_phylum_must_reference_known_universe():
    errors = _errors([_universe(code="W"), _phylum(universe="X")])

    assert errors[0].message == 'Phylum references non-existent universe: "X"'
    assert errors[0].field == "universe_code"


def test_phylum_foreign_key_ignores_row_order():
    # Phylum listed before its universe is still valid.
    assert _errors([_phylum(row=2), _universe(row=3)]) == []
    # And a missing universe is an error wherever the phylum sits.
    assert len(_errors([_phylum(universe="Z", row=2), _universe(row=3)])) == 1
    assert len(_errors([_universe(row=2), _phylum(universe="Z", row=3)])) == 1


def test_phylum_code_length_and_name():
    errors = _errors([_universe(), _phylum(code="RS", name="")])

    assert [e.field for e in errors] == ["phylum_code", "phylum_name"]


def test_family_must_reference_known_phylum():
    errors = _errors([_universe(), _phylum(code="R"), _family(phylum="Q")])

    assert len(errors) == 1
    assert errors[0].message == 'Family references non-existent phylum: "W/Q"'


def test_family_code_length_and_name():
    errors = _errors([_universe(), _phylum(), _family(code="", name="")])

    assert [e.field for e in errors] == ["family_code", "family_name"]


# ─── Groups ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("num", [0, 100, -1, "x", ""])
def test_group_number_range(num):
    rows = [_universe(), _phylum(), _family(), _group(num=num)]
    errors = _errors(rows)

    assert len(errors) == 1
    assert errors[0].message == f'Group number must be between 1-99: "{num}"'


@pytest.mark.parametrize("num", [1, 99])
def test_group_number_accepts_bounds(num):
    assert _errors([_universe(), _phylum(), _family(), _group(num=num)]) == []


def test_group_name_required():
    errors = _errors([_universe(), _phylum(), _group(name="")])

    assert [e.message for e in errors] == ["Group name is required"]


def test_group_with_unknown_phylum_is_only_a_warning():
    rows = [_universe(), _group(phylum="Z", family="")]

    assert _errors(rows) == []
    assert _warnings(rows)[0].field == "phylum_code"


# ─── Tasks ────────────────────────────────────────────────────────────────────

def test_priority_out_of_range():
    errors = _errors(_valid_rows()[:-1] + [_task(priority=6)])

    assert len(errors) == 1
    assert errors[0].message == 'Task priority must be between 1-5: "6"'
    assert errors[0].field == "task_priority"


@pytest.mark.parametrize("status", ["R", "P", "D", "F", "C", "X"])
def test_every_status_code_is_accepted(status):
    assert _errors([_task(status=status)]) == []


def test_invalid_status_message():
    errors = _errors([_task(status="active")])

    assert errors[0].message == 'Invalid task status: "active". Must be R/P/D/F/C/X'


@pytest.mark.parametrize("base_code", ["WRK-01.01", "WR-99.99"])
def test_base_code_format_accepted(base_code):
    rows = [_task(base_code=base_code)]

    assert [e for e in _errors(rows) if e.field == "base_code"] == []


@pytest.mark.parametrize("base_code", ["wrk-1.1", "WRK01.01", "WRKA-01.01", "W-01.01", ""])
def test_base_code_format_rejected(base_code):
    errors = _errors([_task(base_code=base_code)])

    assert [e.field for e in errors] == ["base_code"]
    assert "Expected: ABC-01.01" in errors[0].message


def test_task_number_range():
    errors = _errors([_task(num=100, base_code="WRA-01.99")])

    assert errors[0].message == 'Task number must be between 1-99: "100"'


def test_base_code_not_matching_columns_warns():
    rows = [_task(base_code="WRA-01.02", num=1)]

    assert _errors(rows) == []
    warnings = _warnings(rows)
    assert len(warnings) == 1
    assert 'expected "WRA-01.01"' in warnings[0].message


def test_duplicate_task_base_code_warns_on_each_row():
    rows = [_task(row=2), _task(title="Again", row=3)]
    warnings = _warnings(rows)

    assert [w.row for w in warnings] == [2, 3]
    assert all("Duplicate task base_code" in w.message for w in warnings)


def test_split_issues_partitions_by_severity():
    rows = [_universe(code="AB"), _task(base_code="WRA-01.02")]
    errors, warnings = split_issues(validate_business_rules(rows))

    assert {e.severity for e in errors} == {"error"}
    assert {w.severity for w in warnings} == {"warning"}
    assert len(errors) == 1 and len(warnings) == 1


# ─── Numbers the codec refused ────────────────────────────────────────────────

@pytest.mark.parametrize("raw", ["0_3", "\u0663", " 3", "3.0"])
def test_uncoerced_priority_is_an_error(raw):
    errors = _errors([_task(priority=raw)])

    assert [e.field for e in errors] == ["task_priority"]
    assert errors[0].message == f'Task priority must be between 1-5: "{raw}"'


def test_non_ascii_group_number_is_an_error():
    errors = _errors([_universe(), _phylum(), _family(), _group(num="\u0663")])

    assert [e.message for e in errors] == ['Group number must be between 1-99: "\u0663"']


def test_underscored_numbers_from_file_are_reported():
    text = make_csv(
        csv_row(
            "task", universe_code="W", phylum_code="R", family_code="A",
            group_num="0_1", task_num=1, task_title="Foo", task_status="P",
            task_priority="0_3", base_code="WRA-01.01",
        )
    )
    row = parse_csv(text)[0]

    assert (row.group_num, row.task_priority) == ("0_1", "0_3")
    assert {e.field for e in _errors([row])} == {"task_priority"}
    assert row.to_payload()["task_priority"] == "0_3"
