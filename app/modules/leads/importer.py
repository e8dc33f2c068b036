"""Spreadsheet parsing for bulk lead uploads."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.shared.exceptions import InvalidException

# name, email, phone, education, lead_source, counselor_id
_COLUMNS = 6

RowError = tuple[int, str, str, str]


@dataclass(slots=True)
class LeadImportRow:
    row: int
    name: str
    email: str
    phone: str
    education: str | None
    lead_source: str
    counselor_id: int | None


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Phone numbers typed into Excel come back as floats.
        return str(int(value))
    return str(value).strip()


def _cell_int(value: object) -> int | None:
    text = _cell_text(value)
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(f"counselor id must be an integer, got {text!r}") from exc


def parse_leads_workbook(content: bytes) -> tuple[list[LeadImportRow], list[RowError]]:
    """Read lead rows from the first sheet, skipping the header row.

    Returns parsed rows and ``(row_number, email, phone, error)`` tuples for
    rows that could not be read. A repeated email and phone pair is reported
    as an error against the later row.
    """
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError) as exc:
        raise InvalidException("Uploaded file is not a valid .xlsx workbook") from exc

    try:
        if not workbook.worksheets:
            raise InvalidException("Workbook has no sheets")
        sheet = workbook.worksheets[0]

        rows: list[LeadImportRow] = []
        errors: list[RowError] = []
        seen: dict[str, int] = {}
        for row_number, values in enumerate(
            sheet.iter_rows(min_row=2, max_col=_COLUMNS, values_only=True),
            start=2,
        ):
            cells = list(values) + [None] * (_COLUMNS - len(values))
            if all(_cell_text(cell) == "" for cell in cells):
                continue

            email = _cell_text(cells[1])
            phone = _cell_text(cells[2])
            dedupe_key = f"{email.lower()}|{phone}"
            if dedupe_key in seen:
                errors.append(
                    (row_number, email, phone, f"duplicate of row {seen[dedupe_key]} in this file"),
                )
                continue
            seen[dedupe_key] = row_number

            try:
                counselor_id = _cell_int(cells[5])
            except ValueError as exc:
                errors.append((row_number, email, phone, str(exc)))
                continue

            rows.append(
                LeadImportRow(
                    row=row_number,
                    name=_cell_text(cells[0]),
                    email=email,
                    phone=phone,
                    education=_cell_text(cells[3]) or None,
                    lead_source=_cell_text(cells[4]),
                    counselor_id=counselor_id,
                ),
            )
        return rows, errors
    finally:
        workbook.close()
