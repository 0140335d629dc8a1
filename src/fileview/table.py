"""Grid rendering of delimited (CSV) values.

Only values shaped like the CSV parser's output get a table: a mapping
with a ``rows`` sequence of sequences and an optional ``headers`` row.
Cells go through BeautifulSoup like the tree, so document text is
escaped on serialization.
"""

import re

from bs4 import BeautifulSoup

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")


def is_table_value(value) -> bool:
    """True when value has the CSV mapping shape."""
    if not isinstance(value, dict) or not isinstance(value.get("rows"), list):
        return False
    headers = value.get("headers")
    if headers is not None and not isinstance(headers, list):
        return False
    return all(isinstance(row, list) for row in value["rows"])


def render_table(value) -> str | None:
    """Render a CSV value as an HTML table followed by a size summary.

    Returns None when value is not table shaped.
    """
    if not is_table_value(value):
        return None

    soup = BeautifulSoup("", "html.parser")

    def tag(name, cls=None, text=None):
        el = soup.new_tag(name, attrs={"class": cls} if cls else {})
        if text is not None:
            el.string = text
        return el

    wrapper = tag("div", "fv-csv-wrapper")
    table = tag("table", "fv-csv-table")
    wrapper.append(table)

    headers = value.get("headers")
    if headers:
        row = tag("tr")
        row.append(tag("th", "fv-csv-row-num", "#"))
        for header in headers:
            row.append(tag("th", text=_cell_text(header)))
        thead = tag("thead")
        thead.append(row)
        table.append(thead)

    tbody = tag("tbody")
    for index, cells in enumerate(value["rows"], 1):
        row = tag("tr")
        row.append(tag("td", "fv-csv-row-num", str(index)))
        for cell in cells:
            text = _cell_text(cell)
            numeric = _NUMBER_RE.match(text.strip()) is not None
            row.append(tag("td", "fv-csv-numeric" if numeric else None, text))
        tbody.append(row)
    table.append(tbody)

    row_count = value.get("row_count", len(value["rows"]))
    column_count = value.get("column_count")
    if column_count is None:
        first = headers or (value["rows"][0] if value["rows"] else [])
        column_count = len(first)
    summary = tag("div", "fv-csv-summary", f"Rows: {row_count} | Columns: {column_count}")

    return str(wrapper) + str(summary)


def _cell_text(cell) -> str:
    if cell is None:
        return ""
    if isinstance(cell, bool):
        return "true" if cell else "false"
    return str(cell)
