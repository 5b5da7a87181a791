"""
Census CSV Codec

Stateless encode/decode for the ecological profile interchange files.

Encoding rules:
- A cell is quoted (inner quotes doubled) if and only if it contains a
  comma, a line break or a double quote. Everything else is verbatim.
- Multi-valued fields are joined with "; ". Empty sets give an empty cell.
- Household members travel as one JSON array per row.

Decoding accepts LF or CRLF and drops blank records. Records whose field
count does not match the header, and records the reader cannot parse, are
skipped and counted.

Version: census_csv_v1
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic import ValidationError as ModelValidationError

from ecoprofile.errors import HeadOfHouseholdError
from ecoprofile.records.models import MemberSnapshot, Submission
from ecoprofile.records.vocabulary import FACILITY_VOCABULARY, HOUSING_VOCABULARY

from .columns import (
    Column,
    EXPORT_HEADERS,
    HOUSEHOLD_NUMBER_HEADER,
    IMPORT_COLUMNS,
    INTEGER,
    MEMBER_COLUMNS,
    MEMBER_COUNT,
    MEMBER_EXPORT_HEADERS,
    MEMBERS_HEADER,
    MEMBERS_JSON,
    MULTI,
    MULTI_VALUE_SEPARATOR,
    STATUS,
    SUBMISSION_COLUMNS,
    TEMPLATE_HEADERS,
    TIMESTAMP,
    YES_NO,
    canonical_member_keys,
)

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\n"
BYTE_ORDER_MARK = "\ufeff"

# Member JSON for large households outgrows the reader default (128 KiB)
MAX_CELL_SIZE = 16 * 1024 * 1024
csv.field_size_limit(max(csv.field_size_limit(), MAX_CELL_SIZE))


# =============================================
# Encoding
# =============================================

def escape_cell(value: Any) -> str:
    """Quote a cell only when it holds a comma, a line break or a quote."""
    if value is None:
        return ""
    text = str(value)
    if "," in text or "\n" in text or "\r" in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def join_values(values: Optional[Iterable[str]]) -> str:
    if not values:
        return ""
    return MULTI_VALUE_SEPARATOR.join(values)


def split_values(cell: Optional[str]) -> List[str]:
    """Inverse of join_values. Order kept, duplicates and blanks dropped."""
    if not cell or not cell.strip():
        return []
    seen = set()
    values = []
    for part in cell.split(MULTI_VALUE_SEPARATOR):
        part = part.strip()
        if part and part not in seen:
            seen.add(part)
            values.append(part)
    return values


def encode_line(cells: Iterable[Any]) -> str:
    return ",".join(escape_cell(cell) for cell in cells)


def members_to_json(members: List[MemberSnapshot]) -> str:
    return json.dumps(
        [m.model_dump(exclude_none=True) for m in members],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _format_cell(record: Any, column: Column, members: List[MemberSnapshot]) -> Any:
    if column.kind == MEMBER_COUNT:
        return len(members)
    if column.kind == MEMBERS_JSON:
        return members_to_json(members)

    value = getattr(record, column.field)
    if value is None:
        return ""
    if column.kind == MULTI:
        return join_values(value)
    if column.kind == YES_NO:
        return "Yes" if value else "No"
    if column.kind == STATUS:
        return value.value if hasattr(value, "value") else value
    if column.kind == TIMESTAMP:
        return value.isoformat() if isinstance(value, datetime) else value
    return value


def encode_submissions(submissions: List[Submission]) -> str:
    """
    Submission-level export. One line per submission, in input order.

    Callers filter and sort before encoding.
    """
    lines = [encode_line(EXPORT_HEADERS)]
    for submission in submissions:
        members = submission.household_members
        lines.append(encode_line(
            _format_cell(submission, column, members) for column in SUBMISSION_COLUMNS
        ))
    return LINE_TERMINATOR.join(lines)


def encode_members(submissions: List[Submission]) -> str:
    """Member-level export. One line per (submission, member) pair."""
    lines = [encode_line(MEMBER_EXPORT_HEADERS)]
    for submission in submissions:
        for member in submission.household_members:
            cells = [submission.submission_number, submission.household_number]
            cells.extend(_format_cell(member, column, []) for column in MEMBER_COLUMNS)
            lines.append(encode_line(cells))
    return LINE_TERMINATOR.join(lines)


TEMPLATE_EXAMPLE: Dict[str, str] = {
    "Household Number": "HH-001",
    "House Number": "123",
    "Street/Purok": "Purok 1",
    "Address": "123 Sample Street",
    "Barangay": "Sample Barangay",
    "City": "Sample City",
    "Province": "Sample Province",
    "District": "District 1",
    "Respondent Name": "Juan Dela Cruz",
    "Respondent Relation": "Head of Household",
    "Interview Date": "2024-01-15",
    "Years Staying": "5",
    "Place of Origin": "Manila",
    "Ethnic Group": "Tagalog",
    "House Ownership": "Owned",
    "Lot Ownership": "Owned",
    "Dwelling Type": "Permanent concrete",
    "Lighting Source": "Electricity",
    "Water Supply Level": "Piped water",
    "Water Storage": "Tank; Drums/Cans",
    "Food Storage Type": "Refrigerator",
    "Toilet Facilities": "Flush with septic tank",
    "Drainage Facilities": "Closed drainage",
    "Garbage Disposal": "City collection system",
    "Communication Services": "Cellular networks; Internet",
    "Means of Transport": "PUJ; Motorcycle",
    "Info Sources": "TV; Radio",
    "4Ps Beneficiary": "No",
    "Solo Parent Count": "0",
    "PWD Count": "0",
    "Additional Notes": "Sample notes here",
    MEMBERS_HEADER: json.dumps(
        [
            {
                "full_name": "Juan Dela Cruz",
                "relation_to_head": "Head",
                "birth_date": "1980-01-01",
                "gender": "Male",
                "civil_status": "Married",
                "is_head_of_household": True,
            },
            {
                "full_name": "Maria Dela Cruz",
                "relation_to_head": "Spouse",
                "birth_date": "1982-03-12",
                "gender": "Female",
                "civil_status": "Married",
            },
        ],
        separators=(",", ":"),
    ),
}


def generate_template() -> str:
    """Header line plus one example row that imports cleanly."""
    return LINE_TERMINATOR.join([
        encode_line(TEMPLATE_HEADERS),
        encode_line(TEMPLATE_EXAMPLE[header] for header in TEMPLATE_HEADERS),
    ])


def export_bytes(text: str) -> bytes:
    """File boundary form: UTF-8 with a leading byte-order mark."""
    return (BYTE_ORDER_MARK + text).encode("utf-8")


# =============================================
# Decoding
# =============================================

def read_records(text: str) -> Tuple[List[List[str]], int]:
    """
    Parse CSV text into records.

    Accepts LF or CRLF. A line break inside a quoted cell belongs to the
    cell. A record the reader cannot parse (an unterminated quote, text
    after a closing quote, an oversized cell) costs only the physical line
    it starts on: reading resumes on the next line.

    Returns:
        (records with at least one non-blank cell, malformed record count)
    """
    if text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK):]
    lines = io.StringIO(text, newline="").readlines()

    records: List[List[str]] = []
    malformed = 0
    start = 0
    while start < len(lines):
        reader = csv.reader(lines[start:], strict=True)
        consumed = 0
        try:
            for record in reader:
                consumed = reader.line_num
                if any(cell.strip() for cell in record):
                    records.append(record)
            break
        except csv.Error as e:
            logger.info(f"CSV line {start + consumed + 1} skipped: {e}")
            malformed += 1
            start += consumed + 1
    return records, malformed


@dataclass
class DecodeResult:
    """Decoded rows plus the count of malformed or mismatched records skipped."""
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)
    dropped: int = 0


def decode_with_stats(text: str) -> DecodeResult:
    records, malformed = read_records(text)
    if not records:
        return DecodeResult(dropped=malformed)

    headers = [h.strip() for h in records[0]]
    result = DecodeResult(headers=headers, dropped=malformed)
    for values in records[1:]:
        if len(values) != len(headers):
            result.dropped += 1
            continue
        result.rows.append(dict(zip(headers, values)))

    if result.dropped:
        logger.info(f"CSV decode skipped {result.dropped} malformed or mismatched record(s)")
    return result


def decode(text: str) -> List[Dict[str, str]]:
    """CSV text -> list of header-keyed row maps."""
    return decode_with_stats(text).rows


# =============================================
# Validation
# =============================================

class ImportIssue(BaseModel):
    """One problem found in an import row."""
    row: int = Field(..., description="1-indexed data row")
    column: Optional[str] = None
    message: str


class ImportValidationResult(BaseModel):
    """
    Outcome of validating decoded rows.

    data always holds one (possibly partial) submission per input row,
    including rows with errors, so callers can preview before committing.
    """
    valid: bool
    errors: List[ImportIssue] = Field(default_factory=list)
    warnings: List[ImportIssue] = Field(default_factory=list)
    data: List[Submission] = Field(default_factory=list)

    def errors_for_row(self, row: int) -> List[ImportIssue]:
        return [e for e in self.errors if e.row == row]

    @property
    def error_messages(self) -> List[str]:
        return [e.message for e in self.errors]


def _parse_members(cell: str, row_num: int, issues: List[ImportIssue]) -> Optional[List[MemberSnapshot]]:
    try:
        raw = json.loads(cell)
    except json.JSONDecodeError:
        issues.append(ImportIssue(
            row=row_num,
            column=MEMBERS_HEADER,
            message=f'Row {row_num}: Invalid JSON in "{MEMBERS_HEADER}" field',
        ))
        return None

    if not isinstance(raw, list) or not all(isinstance(m, dict) for m in raw):
        issues.append(ImportIssue(
            row=row_num,
            column=MEMBERS_HEADER,
            message=f'Row {row_num}: "{MEMBERS_HEADER}" must be a JSON array of member objects',
        ))
        return None

    members: List[MemberSnapshot] = []
    for position, entry in enumerate(raw, start=1):
        try:
            members.append(MemberSnapshot.model_validate(canonical_member_keys(entry)))
        except ModelValidationError as e:
            issues.append(ImportIssue(
                row=row_num,
                column=MEMBERS_HEADER,
                message=f'Row {row_num}: Invalid member #{position} in "{MEMBERS_HEADER}": '
                        f'{e.errors()[0]["msg"]}',
            ))
            return None

    heads = sum(1 for m in members if m.is_head_of_household)
    if members and heads != 1:
        issues.append(ImportIssue(
            row=row_num,
            column=MEMBERS_HEADER,
            message=HeadOfHouseholdError(heads, row=row_num).message,
        ))
    return members


def _parse_row(row: Dict[str, str], row_num: int, issues: List[ImportIssue]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    household_number = row.get(HOUSEHOLD_NUMBER_HEADER)
    if not household_number or not household_number.strip():
        issues.append(ImportIssue(
            row=row_num,
            column=HOUSEHOLD_NUMBER_HEADER,
            message=f'Row {row_num}: Missing required field "{HOUSEHOLD_NUMBER_HEADER}"',
        ))

    for column in IMPORT_COLUMNS:
        if column.header not in row:
            continue
        cell = row[column.header]

        if column.kind == MULTI:
            values[column.field] = split_values(cell)
        elif column.kind == YES_NO:
            values[column.field] = cell.strip().lower() == "yes"
        elif column.kind == INTEGER:
            if not cell.strip():
                values[column.field] = None
                continue
            try:
                number = int(cell.strip())
            except ValueError:
                number = -1
            if number < 0:
                issues.append(ImportIssue(
                    row=row_num,
                    column=column.header,
                    message=f'Row {row_num}: Invalid number in "{column.header}"',
                ))
                continue
            values[column.field] = number
        elif column.kind == MEMBERS_JSON:
            if cell.strip():
                members = _parse_members(cell, row_num, issues)
                if members is not None:
                    values[column.field] = members
        else:
            values[column.field] = cell if cell != "" else None

    return values


def _vocabulary_warnings(submission: Submission, row_num: int) -> List[ImportIssue]:
    warnings = []
    headers = {c.field: c.header for c in IMPORT_COLUMNS}
    for name, allowed in FACILITY_VOCABULARY.items():
        for value in getattr(submission, name):
            if value not in allowed:
                warnings.append(ImportIssue(
                    row=row_num,
                    column=headers[name],
                    message=f'Row {row_num}: "{value}" is not a listed option for "{headers[name]}"',
                ))
    for name, allowed in HOUSING_VOCABULARY.items():
        value = getattr(submission, name)
        if value and value not in allowed:
            warnings.append(ImportIssue(
                row=row_num,
                column=headers[name],
                message=f'Row {row_num}: "{value}" is not a listed option for "{headers[name]}"',
            ))
    return warnings


def validate(rows: List[Dict[str, str]]) -> ImportValidationResult:
    """
    Convert decoded rows back into pending submissions.

    Problems are collected per row. A bad row never aborts the batch.
    """
    errors: List[ImportIssue] = []
    warnings: List[ImportIssue] = []
    data: List[Submission] = []

    for index, row in enumerate(rows):
        row_num = index + 1
        values = _parse_row(row, row_num, errors)
        try:
            submission = Submission.model_validate(values)
        except ModelValidationError as e:
            for err in e.errors():
                location = ".".join(str(part) for part in err["loc"])
                errors.append(ImportIssue(
                    row=row_num,
                    message=f"Row {row_num}: {location}: {err['msg']}",
                ))
            # Partial preview object
            submission = Submission.model_construct(**values)
        else:
            warnings.extend(_vocabulary_warnings(submission, row_num))
        data.append(submission)

    return ImportValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        data=data,
    )
