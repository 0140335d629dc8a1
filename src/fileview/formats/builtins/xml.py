"""XML format backed by lxml.

The parsed value for a document is ``{root_name: element}``. An element
with neither attributes nor child elements is its stripped text (or null
when empty). Any other element is a mapping holding ``@name`` keys for
attributes, a ``#text`` key for non-whitespace text and one key per child
element name; repeated child names collapse into a sequence.
"""

import re
from collections import Counter

from lxml import etree

from fileview.errors import FormatError, ParseError
from fileview.formats.base import FormatPlugin
from fileview.formatter import ValidationResult
from fileview.highlight import Token, TokenKind
from fileview.markup import escape_html
from fileview.value import scalar_text, sort_keys, summarize

ATTRIBUTE_PREFIX = "@"
TEXT_KEY = "#text"
DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_BOUNDARY_RE = re.compile(r"(>)(<)(/*)")
_TEXT_ONLY_RE = re.compile(r".+</\w[^>]*>$", re.S)
_CLOSE_RE = re.compile(r"^</\w")
_OPEN_RE = re.compile(r"^<\w[^>]*(?<!/)>")

_MARKUP_RE = re.compile(
    r"(?P<comment><!--[\s\S]*?-->)"
    r"|(?P<cdata><!\[CDATA\[[\s\S]*?\]\]>)"
    r"|(?P<pi><\?[\s\S]*?\?>)"
    r"|(?P<decl><![A-Za-z][^>]*>)"
    r"|(?P<tag></?[A-Za-z_][\w:.-]*(?:\s+[^<>]*?)?/?>)"
    r"|(?P<entity>&#?\w+;)"
)
_TAG_NAME_RE = re.compile(r"</?([A-Za-z_][\w:.-]*)")
_ATTRIBUTE_RE = re.compile(r"""([A-Za-z_][\w:.-]*)\s*(=)\s*("[^"]*"|'[^']*')""")


def _escape_text(text: str) -> str:
    # Newlines are spelled as references so re-indenting cannot alter them.
    return escape_html(text).replace("\r", "&#13;").replace("\n", "&#10;")


def _escape_attribute(text: str) -> str:
    return _escape_text(text).replace('"', "&quot;")


def _qualified_name(name: str, nsmap: dict) -> str:
    """Turn lxml's ``{uri}local`` spelling back into ``prefix:local``."""
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    prefixes = [p for p, u in nsmap.items() if u == uri]
    if None in prefixes or not prefixes:
        return local
    return f"{prefixes[0]}:{local}"


def _namespace_declarations(el, parent_nsmap: dict) -> dict:
    declared = {}
    for prefix, uri in el.nsmap.items():
        if parent_nsmap.get(prefix) != uri:
            key = "xmlns" if prefix is None else f"xmlns:{prefix}"
            declared[ATTRIBUTE_PREFIX + key] = uri
    return declared


def element_to_value(root) -> dict:
    """Convert an lxml element tree into the value shape described above."""
    result: dict = {}
    # (element, parent nsmap, container, key, key holds a sequence)
    stack = [(root, {}, result, _qualified_name(root.tag, root.nsmap), False)]
    while stack:
        el, parent_nsmap, container, key, repeated = stack.pop()
        attributes = _namespace_declarations(el, parent_nsmap)
        for name, value in el.attrib.items():
            attributes[ATTRIBUTE_PREFIX + _qualified_name(name, el.nsmap)] = value
        children = [
            (child, _qualified_name(child.tag, child.nsmap))
            for child in el
            if isinstance(child.tag, str)
        ]
        text = "".join([el.text or ""] + [child.tail or "" for child in el]).strip()

        if not attributes and not children:
            value = text if text else None
        else:
            value = dict(attributes)
            if text:
                value[TEXT_KEY] = text

        if repeated:
            container[key].append(value)
        else:
            container[key] = value

        if children:
            counts = Counter(name for _child, name in children)
            # Reserve keys in document order; children fill them when popped.
            for _child, name in children:
                value.setdefault(name, [] if counts[name] > 1 else None)
            stack.extend(
                (child, el.nsmap, value, name, counts[name] > 1)
                for child, name in reversed(children)
            )
    return result


def _emit(name: str, value, out: list[str]) -> None:
    # (name, value) pairs, or a literal closing tag string.
    stack: list = [(name, value)]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        name, value = item
        if isinstance(value, list):
            stack.extend((name, v) for v in reversed(value))
            continue
        if value is None:
            out.append(f"<{name}/>")
            continue
        if not isinstance(value, dict):
            out.append(f"<{name}>{_escape_text(scalar_text(value))}</{name}>")
            continue

        attributes = []
        children = []
        text = None
        for key, child in value.items():
            if key.startswith(ATTRIBUTE_PREFIX):
                if isinstance(child, (list, dict)):
                    raise FormatError(f"Attribute {key} of <{name}> must be a scalar")
                attributes.append(
                    f' {key[1:]}="{_escape_attribute(scalar_text(child))}"'
                )
            elif key == TEXT_KEY:
                text = scalar_text(child)
            else:
                children.append((key, child))

        start = f"<{name}{''.join(attributes)}"
        if text is None and not children:
            out.append(start + "/>")
            continue
        out.append(start + ">")
        if text is not None:
            out.append(_escape_text(text))
        stack.append(f"</{name}>")
        stack.extend(reversed(children))


def reindent(xml: str, indent: int = 2) -> str:
    """Put each tag on its own line, indented by nesting depth.

    Text-only elements stay on one line and self-closing tags do not
    change the depth.
    """
    padding = " " * indent
    pad = 0
    lines = []
    # Split at tag boundaries only; text may contain newlines.
    marked = _BOUNDARY_RE.sub(lambda m: m.group(1) + "\0" + m.group(2) + m.group(3), xml)
    for line in marked.split("\0"):
        level = 0
        if _TEXT_ONLY_RE.match(line):
            level = 0
        elif _CLOSE_RE.match(line) and pad > 0:
            pad -= 1
        elif _OPEN_RE.match(line):
            level = 1
        lines.append(padding * pad + line.strip())
        pad += level
    return "\n".join(lines)


def tokenize_xml(text: str) -> list[Token]:
    tokens: list[Token] = []
    for match in _MARKUP_RE.finditer(text):
        kind = match.lastgroup
        start, end = match.span()
        if kind == "comment":
            tokens.append(Token(TokenKind.COMMENT, start, end))
        elif kind == "cdata":
            tokens.append(Token(TokenKind.STRING, start, end))
        elif kind in ("pi", "decl"):
            tokens.append(Token(TokenKind.KEYWORD, start, end))
        elif kind == "entity":
            tokens.append(Token(TokenKind.VARIABLE, start, end))
        else:
            tokens.extend(_tag_tokens(match.group(), start))
    return tokens


def _tag_tokens(tag: str, start: int) -> list[Token]:
    name = _TAG_NAME_RE.match(tag)
    name_start, name_end = name.span(1)
    tokens = [
        Token(TokenKind.OPERATOR, start, start + name_start),
        Token(TokenKind.TAG, start + name_start, start + name_end),
    ]
    for attr in _ATTRIBUTE_RE.finditer(tag, name_end):
        for group, kind in (
            (1, TokenKind.ATTRIBUTE),
            (2, TokenKind.OPERATOR),
            (3, TokenKind.STRING),
        ):
            tokens.append(Token(kind, start + attr.start(group), start + attr.end(group)))
    close = 2 if tag.endswith("/>") else 1
    tokens.append(Token(TokenKind.OPERATOR, start + len(tag) - close, start + len(tag)))
    return tokens


class XmlFormat(FormatPlugin):
    name = "xml"
    mime_types = ["application/xml", "text/xml", "application/xhtml+xml"]
    extensions = ["xml", "xhtml", "svg", "rss", "atom", "opml"]
    priority = 7

    def matches(self, text: str) -> bool:
        trimmed = text.strip()
        return trimmed.startswith("<?xml") or (
            trimmed.startswith("<") and ">" in trimmed
        )

    def parse(self, text: str):
        parser = etree.XMLParser(
            recover=False,
            resolve_entities=False,
            no_network=True,
            encoding="utf-8",
        )
        try:
            root = etree.fromstring(text.encode("utf-8"), parser)
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Invalid XML: {e.msg}", line=e.lineno) from e
        return element_to_value(root)

    def validate(self, value) -> ValidationResult:
        if not isinstance(value, dict) or len(value) != 1:
            return ValidationResult(False, "XML document must have exactly one root element")
        return ValidationResult(True)

    def format(self, value, options) -> str:
        if not isinstance(value, dict) or len(value) != 1:
            raise FormatError("XML value must be a mapping with exactly one root element")
        if options.sort_keys:
            value = sort_keys(value)
        name, element = next(iter(value.items()))
        if isinstance(element, list):
            raise FormatError("XML document cannot have more than one root element")
        out = [DECLARATION]
        _emit(name, element, out)
        return reindent("".join(out), options.indent)

    def tokenize(self, text: str) -> list[Token]:
        return tokenize_xml(text)

    def metadata(self, value) -> dict:
        meta = summarize(value)
        if isinstance(value, dict) and len(value) == 1:
            meta["root"] = next(iter(value))
        return meta
