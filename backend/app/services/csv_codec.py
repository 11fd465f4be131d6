"""CSV codec for the ATOL system export format.

Import turns raw text into ``ParsedRow`` objects, enforcing the header shape,
per-row field counts and the row ``type``. Export renders a taxonomy snapshot
back into the same 16-column layout, so an export can be re-imported as is.
"""
import csv
import io
import logging
import re

from app.schemas.imports import CSV_COLUMNS, NUMERIC_COLUMNS, ParsedRow, RowKind
from app.schemas.taxonomy import TaxonomySnapshot

logger = logging.getLogger(__name__)

ROW_KINDS = {kind.value for kind in RowKind}

_INT_RE = re.compile(r"[+-]?[0-9]+")


class CSVParseError(ValueError):
    """Malformed CSV structure. Fatal to the whole import."""

    def __init__(self, message: str, row: int | None = None):
        super().__init__(message)
        self.row = row


# ─── Import ───

def _coerce_int(value: str) -> int | str:
    if _INT_RE.fullmatch(value):
        return int(value)
    return value


def _is_blank(record: list[str]) -> bool:
    return all(not field.strip() for field in record) and len(record) <= 1


def _build_row(header: list[str], record: list[str], line: int) -> ParsedRow:
    if len(record) != len(header):
        raise CSVParseError(
            f"Row {line}: Expected {len(header)} columns, got {len(record)}", row=line
        )

    values: dict[str, int | str] = {}
    for column, raw in zip(header, record):
        if column not in CSV_COLUMNS:
            continue
        value = raw.strip()
        values[column] = _coerce_int(value) if column in NUMERIC_COLUMNS else value

    if values["type"] not in ROW_KINDS:
        raise CSVParseError(f"Row {line}: Invalid type '{values['type']}'", row=line)

    return ParsedRow(row_number=line, **values)


def parse_csv(text: str) -> list[ParsedRow]:
    """Parse an ATOL export into typed rows, in file order.

    Row numbers are physical line numbers in ``text`` (the header is line 1
    when the file has no leading blank lines).

    Every cell is trimmed, quoted or not: the format does not keep leading
    or trailing whitespace, and the diff compares trimmed values on both sides.

    Raises:
        CSVParseError: empty file, missing header columns, bad quoting,
            a row whose field count differs from the header, or an
            unknown row type.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text, newline=""), skipinitialspace=True, strict=True)
    header: list[str] | None = None
    rows: list[ParsedRow] = []
    last_line = 0

    try:
        for record in reader:
            start_line, last_line = last_line + 1, reader.line_num
            if _is_blank(record):
                continue

            if header is None:
                header = [h.strip() for h in record]
                missing = [c for c in CSV_COLUMNS if c not in header]
                if missing:
                    raise CSVParseError(
                        f"Missing required columns: {', '.join(missing)}", row=start_line
                    )
                continue

            rows.append(_build_row(header, record, start_line))
    except csv.Error as exc:
        raise CSVParseError(f"Row {reader.line_num}: {exc}", row=reader.line_num) from exc

    if header is None:
        raise CSVParseError("CSV file is empty")

    logger.debug("parse_csv: %d data rows", len(rows))
    return rows


# ─── Export ───

def _order_key(display_order: int | None, *codes) -> tuple:
    return (display_order is None, display_order or 0, *codes)


def _blank_row(kind: RowKind) -> dict[str, str | int]:
    row: dict[str, str | int] = {column: "" for column in CSV_COLUMNS}
    row["type"] = kind.value
    return row


def _opt(value: int | None) -> int | str:
    return "" if value is None else value


def snapshot_to_rows(snapshot: TaxonomySnapshot) -> list[dict[str, str | int]]:
    """Flatten a snapshot into export rows: universes, phyla, families, groups, tasks."""
    universe_names = {u.code: u.name for u in snapshot.universes}
    phylum_names = {(p.universe_code, p.code): p.name for p in snapshot.phyla}
    family_names = {(f.universe_code, f.phylum_code, f.code): f.name for f in snapshot.families}

    rows: list[dict[str, str | int]] = []

    for u in sorted(snapshot.universes, key=lambda u: _order_key(u.display_order, u.code)):
        row = _blank_row(RowKind.universe)
        row.update(
            universe_code=u.code,
            universe_name=u.name,
            id=u.id,
            display_order=_opt(u.display_order),
        )
        rows.append(row)

    for p in sorted(
        snapshot.phyla, key=lambda p: (p.universe_code, *_order_key(p.display_order, p.code))
    ):
        row = _blank_row(RowKind.phylum)
        row.update(
            universe_code=p.universe_code,
            universe_name=universe_names.get(p.universe_code, p.universe_name),
            phylum_code=p.code,
            phylum_name=p.name,
            id=p.id,
            display_order=_opt(p.display_order),
        )
        rows.append(row)

    for f in sorted(
        snapshot.families,
        key=lambda f: (f.universe_code, f.phylum_code, *_order_key(f.display_order, f.code)),
    ):
        row = _blank_row(RowKind.family)
        row.update(
            universe_code=f.universe_code,
            universe_name=universe_names.get(f.universe_code, f.universe_name),
            phylum_code=f.phylum_code,
            phylum_name=phylum_names.get((f.universe_code, f.phylum_code), f.phylum_name),
            family_code=f.code,
            family_name=f.name,
            id=f.id,
            display_order=_opt(f.display_order),
        )
        rows.append(row)

    for g in sorted(
        snapshot.groups,
        key=lambda g: (g.universe_code, g.phylum_code, g.family_code, g.group_num),
    ):
        row = _blank_row(RowKind.group)
        row.update(
            universe_code=g.universe_code,
            universe_name=universe_names.get(g.universe_code, ""),
            phylum_code=g.phylum_code,
            phylum_name=phylum_names.get((g.universe_code, g.phylum_code), ""),
            family_code=g.family_code,
            family_name=family_names.get((g.universe_code, g.phylum_code, g.family_code), ""),
            group_num=g.group_num,
            group_name=g.name or "",
            id=g.id,
        )
        rows.append(row)

    for t in sorted(snapshot.tasks, key=lambda t: t.base_code):
        row = _blank_row(RowKind.task)
        row.update(
            universe_code=t.universe_code,
            universe_name=t.universe_name or "",
            phylum_code=t.phylum_code,
            phylum_name=t.phylum_name or "",
            family_code=t.family_code,
            family_name=t.family_name or "",
            group_num=_opt(t.group_num),
            group_name=t.group_name or "",
            task_num=_opt(t.task_num),
            task_title=t.title,
            task_status=t.effective_status or "",
            task_priority=_opt(t.priority),
            base_code=t.base_code,
            id=t.id,
        )
        rows.append(row)

    return rows


def render_csv(rows: list[dict[str, str | int]]) -> str:
    """Write rows under the canonical header.

    Fields containing a comma, quote or line break are quoted; embedded
    quotes are doubled.
    """
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue()


def export_csv(snapshot: TaxonomySnapshot) -> str:
    return render_csv(snapshot_to_rows(snapshot))
