"""JSON format, with tolerance for // and /* */ comments."""

import json

from fileview.errors import ParseError
from fileview.formats.base import FormatPlugin
from fileview.highlight import TokenKind


def strip_comments(text: str) -> str:
    """Remove // and /* */ comments outside string literals.

    Block comments are replaced by the newlines they contained so that
    parser line numbers still point at the original text.
    """
    if "//" not in text and "/*" not in text:
        return text

    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            stop = n if end == -1 else end + 2
            out.append("\n" * text.count("\n", i, stop))
            i = stop
        else:
            out.append(ch)
            i += 1
    return "".join(out)


class JsonFormat(FormatPlugin):
    name = "json"
    mime_types = ["application/json", "text/json", "application/ld+json"]
    extensions = ["json", "jsonld", "json5", "geojson"]
    priority = 10

    # Order matters: keys and strings are claimed before anything inside
    # them could match as a number or keyword.
    patterns = {
        TokenKind.KEY: r'"(?:[^"\\\n]|\\.)*"(?=\s*:)',
        TokenKind.STRING: r'"(?:[^"\\\n]|\\.)*"',
        TokenKind.COMMENT: r"//[^\n]*|/\*[\s\S]*?\*/",
        TokenKind.NUMBER: r"-?\b\d+(?:\.\d+)?(?:[eE][+-]?\d+)?\b",
        TokenKind.BOOLEAN: r"\b(?:true|false)\b",
        TokenKind.NULL: r"\bnull\b",
        TokenKind.PUNCTUATION: r"[{}\[\],:]",
    }

    def matches(self, text: str) -> bool:
        trimmed = text.strip()
        return (trimmed.startswith("{") and trimmed.endswith("}")) or (
            trimmed.startswith("[") and trimmed.endswith("]")
        )

    def parse(self, text: str):
        try:
            return json.loads(strip_comments(text))
        except json.JSONDecodeError as e:
            raise ParseError(
                f"Invalid JSON: {e.msg} at line {e.lineno} column {e.colno}",
                line=e.lineno,
            ) from e

    def format(self, value, options) -> str:
        return json.dumps(
            value,
            indent=options.indent,
            sort_keys=options.sort_keys,
            ensure_ascii=False,
        )
