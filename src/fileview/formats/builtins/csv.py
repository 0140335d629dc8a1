"""CSV/TSV format with delimiter and header detection."""

import re
from dataclasses import dataclass

from fileview.errors import FormatError, ParseError
from fileview.formats.base import FormatPlugin
from fileview.formatter import ValidationResult
from fileview.highlight import Token, TokenKind

DELIMITERS = [",", "\t", "|", ";"]
SAMPLE_LINES = 10

_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


@dataclass
class Field:
    start: int
    end: int
    value: str
    quoted: bool = False


def is_numeric(cell: str) -> bool:
    return bool(_NUMERIC_RE.match(cell.strip()))


def detect_delimiter(text: str) -> str:
    """Pick the delimiter whose per-line count is the most consistent.

    Each candidate present on the first sampled line scores the number of
    sampled lines with exactly the first line's count. Comma wins ties.
    """
    lines = [line for line in text.split("\n") if line.strip()][:SAMPLE_LINES]
    best = ","
    best_consistency = 0
    for delimiter in DELIMITERS:
        counts = [line.count(delimiter) for line in lines]
        if not counts or counts[0] == 0:
            continue
        consistency = sum(1 for c in counts if c == counts[0])
        if consistency > best_consistency:
            best = delimiter
            best_consistency = consistency
    return best


def detect_header(rows: list[list[str]]) -> bool:
    """First row is a header if mostly text while the second is mostly numbers."""
    if len(rows) < 2:
        return False
    first, second = rows[0], rows[1]
    first_numeric = sum(1 for cell in first if is_numeric(cell))
    second_numeric = sum(1 for cell in second if is_numeric(cell))
    return first_numeric < len(first) / 2 and second_numeric > len(second) / 2


def scan(text: str, delimiter: str) -> tuple[list[list[Field]], list[int]]:
    """Split text into records of fields.

    Quoted fields may span lines and use ``""`` for a literal quote.
    Unquoted fields are trimmed. Blank lines are skipped.

    Returns:
        (records, offsets of the delimiters that separated fields)

    Raises:
        ParseError: On an unterminated quoted field.
    """
    records: list[list[Field]] = []
    separators: list[int] = []
    record: list[Field] = []
    n = len(text)
    i = 0
    stops = (delimiter, "\n", "\r")

    while True:
        j = i
        while j < n and text[j] in " \t" and text[j] != delimiter:
            j += 1

        if j < n and text[j] == '"':
            k = j + 1
            chars = []
            while True:
                if k >= n:
                    raise ParseError(
                        "Unterminated quoted field", line=text.count("\n", 0, j) + 1
                    )
                if text[k] == '"':
                    if k + 1 < n and text[k + 1] == '"':
                        chars.append('"')
                        k += 2
                        continue
                    k += 1
                    break
                chars.append(text[k])
                k += 1
            m = k
            while m < n and text[m] not in stops:
                m += 1
            extra = text[k:m].rstrip()
            field = Field(j, k + len(extra), "".join(chars) + extra.strip(), True)
        else:
            m = i
            while m < n and text[m] not in stops:
                m += 1
            raw = text[i:m]
            value = raw.strip()
            start = i + len(raw) - len(raw.lstrip())
            field = Field(start, start + len(value), value)

        record.append(field)
        i = m
        if i < n and text[i] == delimiter:
            separators.append(i)
            i += 1
            continue

        records.append(record)
        record = []
        if i >= n:
            break
        i += 2 if text.startswith("\r\n", i) else 1
        if i >= n:
            break

    records = [
        r for r in records if not (len(r) == 1 and not r[0].quoted and not r[0].value)
    ]
    return records, separators


def quote_field(value, delimiter: str) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if (
        delimiter in text
        or '"' in text
        or "\n" in text
        or "\r" in text
        or text != text.strip()
    ):
        return '"' + text.replace('"', '""') + '"'
    return text


def _format_row(row: list, delimiter: str) -> str:
    line = delimiter.join(quote_field(cell, delimiter) for cell in row)
    # A blank line is skipped on parse; keep a lone empty cell as "".
    if not line and len(row) == 1:
        return '""'
    return line


class CsvFormat(FormatPlugin):
    name = "csv"
    mime_types = ["text/csv", "application/csv", "text/tab-separated-values"]
    extensions = ["csv", "tsv", "tab"]
    priority = 6

    def matches(self, text: str) -> bool:
        lines = [line for line in text.split("\n") if line.strip()][:5]
        if not lines:
            return False
        return any(all(d in line for line in lines) for d in DELIMITERS)

    def parse(self, text: str):
        delimiter = detect_delimiter(text)
        records, _ = scan(text, delimiter)
        rows = [[f.value for f in record] for record in records]
        has_header = detect_header(rows)
        return {
            "headers": rows[0] if has_header else None,
            "rows": rows[1:] if has_header else rows,
            "delimiter": delimiter,
            "row_count": len(rows),
            "column_count": len(rows[0]) if rows else 0,
        }

    def validate(self, value) -> ValidationResult:
        if not value.get("rows"):
            return ValidationResult(False, "CSV has no data rows")
        width = value.get("column_count")
        records = ([value["headers"]] if value.get("headers") else []) + value["rows"]
        for number, row in enumerate(records, 1):
            if len(row) != width:
                return ValidationResult(
                    False,
                    f"Row {number} has {len(row)} columns, expected {width}",
                )
        return ValidationResult(True)

    def format(self, value, options) -> str:
        if not isinstance(value, dict) or not isinstance(value.get("rows"), list):
            raise FormatError("CSV value must be a mapping with a 'rows' sequence")
        delimiter = options.delimiter or value.get("delimiter") or ","
        records = ([value["headers"]] if value.get("headers") else []) + value["rows"]
        return "\n".join(_format_row(row, delimiter) for row in records)

    def tokenize(self, text: str) -> list[Token]:
        try:
            records, separators = scan(text, detect_delimiter(text))
        except ParseError:
            return []
        header = detect_header([[f.value for f in r] for r in records])

        tokens = [Token(TokenKind.PUNCTUATION, s, s + 1) for s in separators]
        for index, record in enumerate(records):
            for field in record:
                if field.start == field.end:
                    continue
                if index == 0 and header:
                    kind = TokenKind.KEY
                elif field.quoted:
                    kind = TokenKind.STRING
                elif is_numeric(field.value):
                    kind = TokenKind.NUMBER
                else:
                    continue
                tokens.append(Token(kind, field.start, field.end))
        return tokens

    def metadata(self, value) -> dict:
        return {
            "type": "table",
            "rows": len(value.get("rows") or []),
            "columns": value.get("column_count", 0),
            "delimiter": value.get("delimiter"),
        }
