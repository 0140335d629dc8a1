"""Tests for the built-in formats."""

import math

import pytest

from fileview.errors import FormatError, ParseError
from fileview.formats import discover_formats
from fileview.formatter import FormatOptions

TOML_DOC = """\
# Document comment
title = "TOML Example"  # trailing comment

[owner]
name = 'Tom'
dob = 1979-05-27T07:32:00-08:00

[database]
ports = [ 8000, 8001, 8002 ]
enabled = true
temp = { cpu = 79.5, case = 72.0 }

[[products]]
name = "Hammer"
sku = 738594937

[[products]]
name = "Nail"
"""


@pytest.fixture(scope="module")
def plugins():
    """Built-in format plugins by name."""
    return {p.name: p for p in discover_formats()}


@pytest.fixture
def options():
    return FormatOptions()


class TestJson:
    """Tests for the JSON format."""

    def test_round_trip(self, plugins, options):
        """Test parse, format, parse yields an equal value."""
        fmt = plugins["json"]
        first = fmt.parse('{"a":1,"b":[true,null,"x"]}')

        second = fmt.parse(fmt.format(first, options))

        assert second == first == {"a": 1, "b": [True, None, "x"]}

    def test_comments_are_ignored(self, plugins):
        """Test // and /* */ comments outside strings are stripped."""
        text = '{\n  // line\n  "url": "http://x/*y*/", /* block\n */ "n": 2\n}'

        assert plugins["json"].parse(text) == {"url": "http://x/*y*/", "n": 2}

    def test_error_line(self, plugins):
        """Test parse errors carry the line number."""
        with pytest.raises(ParseError) as exc:
            plugins["json"].parse('{\n  "a": 1\n  "b": 2\n}')

        assert exc.value.line == 3

    def test_format_options(self, plugins):
        """Test indent and key sorting."""
        text = plugins["json"].format(
            {"b": 1, "a": "é"}, FormatOptions(indent=4, sort_keys=True)
        )

        assert text == '{\n    "a": "é",\n    "b": 1\n}'

    def test_matches(self, plugins):
        """Test the content matcher looks at the outer brackets."""
        fmt = plugins["json"]
        assert fmt.matches('  {"a": 1}\n')
        assert fmt.matches("[1, 2]")
        assert not fmt.matches("a: 1")

    def test_metadata(self, plugins):
        """Test top-level summary."""
        assert plugins["json"].metadata({"a": 1, "b": 2}) == {
            "type": "object",
            "keys": 2,
        }
        assert plugins["json"].metadata([1]) == {"type": "array", "items": 1}


class TestYaml:
    """Tests for the YAML format."""

    def test_parse(self, plugins):
        """Test block and flow collections."""
        value = plugins["yaml"].parse("a: 1\nb: [x, y]\nc:\n  - d: null\n")

        assert value == {"a": 1, "b": ["x", "y"], "c": [{"d": None}]}

    def test_normalizes_native_types(self, plugins):
        """Test dates become ISO strings and keys become strings."""
        value = plugins["yaml"].parse("d: 2024-01-02\n1: one\ntrue: yes\n")

        assert value == {"d": "2024-01-02", "1": "one", "true": True}

    def test_parse_error(self, plugins):
        """Test malformed YAML raises ParseError with a line."""
        with pytest.raises(ParseError) as exc:
            plugins["yaml"].parse("a: [1, 2\nb: 3\n")

        assert exc.value.line is not None

    def test_empty_document_is_invalid(self, plugins):
        """Test an empty document fails validation."""
        fmt = plugins["yaml"]
        assert not fmt.validate(fmt.parse("")).valid

    def test_format_block_style(self, plugins, options):
        """Test output uses block style and keeps key order."""
        text = plugins["yaml"].format({"b": [1, 2], "a": "x"}, options)

        assert text == "b:\n- 1\n- 2\na: x\n"

    def test_format_never_emits_aliases(self, plugins, options):
        """Test shared objects are written out in full."""
        shared = [1, 2]
        text = plugins["yaml"].format({"a": shared, "b": shared}, options)

        assert "&" not in text
        assert "*" not in text

    def test_round_trip(self, plugins, options):
        """Test parse, format, parse yields an equal value."""
        fmt = plugins["yaml"]
        first = fmt.parse("name: café\nitems:\n  - {k: v}\n  - [1, 2.5]\n")

        assert fmt.parse(fmt.format(first, options)) == first

    def test_aliases_are_expanded(self, plugins):
        """Test ordinary anchors and aliases still load."""
        value = plugins["yaml"].parse("a: &x [1, 2]\nb: *x\n")

        assert value == {"a": [1, 2], "b": [1, 2]}

    def test_alias_expansion_limit(self, plugins):
        """Test nested aliases that expand past the node limit are rejected."""
        lines = ['l0: &l0 ["x", "x", "x", "x", "x", "x", "x", "x", "x", "x"]']
        for level in range(1, 6):
            refs = ", ".join([f"*l{level - 1}"] * 10)
            lines.append(f"l{level}: &l{level} [{refs}]")

        with pytest.raises(ParseError, match="expand to more than"):
            plugins["yaml"].parse("\n".join(lines))

    def test_recursive_alias(self, plugins):
        """Test an alias inside its own anchor is a parse error."""
        with pytest.raises(ParseError, match="Recursive"):
            plugins["yaml"].parse("a: &x [1, *x]\n")

    @pytest.mark.parametrize(
        "text",
        ["---\nfoo", "version: 2", "a: 1\nb: 2", "- one\n- two"],
    )
    def test_matches(self, plugins, text):
        """Test YAML-looking content is claimed."""
        assert plugins["yaml"].matches(text)

    def test_does_not_match_prose(self, plugins):
        """Test ordinary text is not claimed."""
        assert not plugins["yaml"].matches("just some words")


class TestXml:
    """Tests for the XML format."""

    def test_malformed_is_parse_error(self, plugins):
        """Test mismatched tags raise ParseError, not a partial tree."""
        with pytest.raises(ParseError):
            plugins["xml"].parse("<a><b></a>")

    def test_value_shape(self, plugins):
        """Test attributes, repeated children and empty elements."""
        value = plugins["xml"].parse(
            '<root id="1"><item>a</item><item>b</item><name>x</name><empty/></root>'
        )

        assert value == {
            "root": {"@id": "1", "item": ["a", "b"], "name": "x", "empty": None}
        }

    def test_mixed_content(self, plugins):
        """Test element text next to children is kept under #text."""
        value = plugins["xml"].parse('<p class="c">hi <b>x</b></p>')

        assert value == {"p": {"@class": "c", "#text": "hi", "b": "x"}}

    def test_namespaces(self, plugins):
        """Test namespace declarations and prefixed names."""
        value = plugins["xml"].parse(
            '<r xmlns="urn:a" xmlns:x="urn:x"><x:c>1</x:c></r>'
        )

        assert value == {"r": {"@xmlns": "urn:a", "@xmlns:x": "urn:x", "x:c": "1"}}

    def test_format(self, plugins, options):
        """Test output has a declaration and one tag per line."""
        text = plugins["xml"].format(
            {"root": {"@id": "1", "a": "x < y", "b": None}}, options
        )

        assert text == (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<root id="1">\n'
            "  <a>x &lt; y</a>\n"
            "  <b/>\n"
            "</root>"
        )

    def test_format_single_character_tags(self, plugins, options):
        """Test one-letter element names are indented by nesting depth."""
        text = plugins["xml"].format({"a": {"b": {"c": "x"}}}, options)

        assert text == (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            "<a>\n"
            "  <b>\n"
            "    <c>x</c>\n"
            "  </b>\n"
            "</a>"
        )

    def test_format_keeps_multiline_text(self, plugins, options):
        """Test text spanning lines is not re-indented."""
        fmt = plugins["xml"]
        value = {"a": {"b": "line1\nline2", "c": "x"}}

        text = fmt.format(value, options)

        assert "  <b>line1\nline2</b>\n  <c>x</c>\n</a>" in text
        assert fmt.parse(text) == value

    def test_round_trip(self, plugins, options):
        """Test parse, format, parse yields an equal value."""
        fmt = plugins["xml"]
        first = fmt.parse(
            '<r xmlns:x="urn:x" v="a&amp;b"><x:c>1</x:c><x:c>2</x:c>'
            "<d>line1\nline2</d><e><f>deep</f></e></r>"
        )

        assert fmt.parse(fmt.format(first, options)) == first

    def test_format_rejects_multiple_roots(self, plugins, options):
        """Test values with more than one root cannot be written."""
        with pytest.raises(FormatError):
            plugins["xml"].format({"a": 1, "b": 2}, options)

    def test_validate(self, plugins):
        """Test validation requires exactly one root."""
        assert plugins["xml"].validate({"a": None}).valid
        assert not plugins["xml"].validate({}).valid

    def test_matches(self, plugins):
        """Test the content matcher."""
        assert plugins["xml"].matches('<?xml version="1.0"?><a/>')
        assert plugins["xml"].matches("<svg></svg>")
        assert not plugins["xml"].matches("a < b")

    def test_metadata_root(self, plugins):
        """Test metadata names the root element."""
        assert plugins["xml"].metadata({"feed": {}})["root"] == "feed"


class TestCsv:
    """Tests for the CSV format."""

    def test_comma_delimiter(self, plugins):
        """Test comma separated input."""
        value = plugins["csv"].parse("a,b,c\n1,2,3\n4,5,6")

        assert value["delimiter"] == ","
        assert value["headers"] == ["a", "b", "c"]
        assert value["rows"] == [["1", "2", "3"], ["4", "5", "6"]]

    def test_tab_delimiter(self, plugins):
        """Test tab separated input."""
        assert plugins["csv"].parse("a\tb\tc\n1\t2\t3")["delimiter"] == "\t"

    def test_semicolon_delimiter(self, plugins):
        """Test semicolon separated input."""
        assert plugins["csv"].parse("a;b\n1;2\n3;4")["delimiter"] == ";"

    def test_quoted_fields(self, plugins):
        """Test quotes, escaped quotes and embedded newlines."""
        value = plugins["csv"].parse('name,note\n"Smith, J","said ""hi""\nthen left"\n')

        assert value["headers"] is None
        assert value["rows"][1] == ["Smith, J", 'said "hi"\nthen left']

    def test_trims_unquoted_fields(self, plugins):
        """Test whitespace around unquoted fields is removed."""
        value = plugins["csv"].parse("a , b\n 1 , 2 ")

        assert value["headers"] == ["a", "b"]
        assert value["rows"] == [["1", "2"]]

    def test_unterminated_quote(self, plugins):
        """Test an unterminated quoted field is a parse error."""
        with pytest.raises(ParseError, match="Unterminated"):
            plugins["csv"].parse('a,b\n"open,2\n')

    def test_column_mismatch_is_invalid(self, plugins):
        """Test rows of the wrong width fail validation."""
        fmt = plugins["csv"]
        result = fmt.validate(fmt.parse("a,b\n1,2,3\n4,5"))

        assert not result.valid
        assert "columns" in result.error

    def test_format_quotes_when_needed(self, plugins, options):
        """Test fields with delimiters, quotes or edge spaces are quoted."""
        text = plugins["csv"].format(
            {
                "headers": ["a", "b"],
                "rows": [["x,y", 'say "hi"'], [" pad", "plain"]],
                "delimiter": ",",
            },
            options,
        )

        assert text == 'a,b\n"x,y","say ""hi"""\n" pad",plain'

    def test_round_trip(self, plugins, options):
        """Test parse, format, parse yields an equal value."""
        fmt = plugins["csv"]
        first = fmt.parse('id|name\n1|"a|b"\n2|"multi\nline"')

        assert fmt.parse(fmt.format(first, options)) == first

    def test_round_trip_empty_single_column_cell(self, plugins, options):
        """Test an empty cell in a one-column file survives formatting."""
        fmt = plugins["csv"]
        first = fmt.parse('h\n""\nx')

        text = fmt.format(first, options)

        assert text == 'h\n""\nx'
        assert fmt.parse(text) == first
        assert first["rows"] == [["h"], [""], ["x"]]
        assert first["row_count"] == 3

    def test_metadata(self, plugins):
        """Test table metadata."""
        fmt = plugins["csv"]
        meta = fmt.metadata(fmt.parse("x,y\n1,2\n3,4"))

        assert meta == {"type": "table", "rows": 2, "columns": 2, "delimiter": ","}

    def test_matches(self, plugins):
        """Test every sampled line must share a delimiter."""
        assert plugins["csv"].matches("a,b\n1,2")
        assert not plugins["csv"].matches("a,b\nno delimiter here")


class TestToml:
    """Tests for the TOML format."""

    def test_parse_document(self, plugins):
        """Test tables, arrays of tables, inline tables and scalars."""
        value = plugins["toml"].parse(TOML_DOC)

        assert value == {
            "title": "TOML Example",
            "owner": {"name": "Tom", "dob": "1979-05-27T07:32:00-08:00"},
            "database": {
                "ports": [8000, 8001, 8002],
                "enabled": True,
                "temp": {"cpu": 79.5, "case": 72.0},
            },
            "products": [{"name": "Hammer", "sku": 738594937}, {"name": "Nail"}],
        }

    def test_numbers(self, plugins):
        """Test integer spellings and special floats."""
        value = plugins["toml"].parse(
            "hex = 0xff\noct = 0o17\nbin = 0b101\nbig = 1_000\nneg = -3e2\nx = inf\n"
        )

        assert value["hex"] == 255
        assert value["oct"] == 15
        assert value["bin"] == 5
        assert value["big"] == 1000
        assert value["neg"] == -300.0
        assert math.isinf(value["x"])

    def test_strings(self, plugins):
        """Test escapes, literal and multi-line strings."""
        value = plugins["toml"].parse(
            's = "tab\\there \\u00e9"\n'
            "lit = 'C:\\path'\n"
            'ml = """\nline1\nline2"""\n'
            'cont = """one \\\n    two"""\n'
        )

        assert value == {
            "s": "tab\there é",
            "lit": "C:\\path",
            "ml": "line1\nline2",
            "cont": "one two",
        }

    def test_dotted_keys(self, plugins):
        """Test dotted keys create nested tables."""
        value = plugins["toml"].parse('a.b = 1\na.c = "x"\n')

        assert value == {"a": {"b": 1, "c": "x"}}

    def test_header_extends_inline_and_dotted_tables(self, plugins):
        """Test a sub-table header may extend tables defined inline or dotted."""
        value = plugins["toml"].parse("a = {b = 1}\nc.d = 2\n[a.e]\nf = 3\n[c.g]\nh = 4\n")

        assert value == {"a": {"b": 1, "e": {"f": 3}}, "c": {"d": 2, "g": {"h": 4}}}

    def test_bare_string_fallback(self, plugins):
        """Test unquoted values that are not TOML literals become strings."""
        value = plugins["toml"].parse("greeting = hello world # hi\n")

        assert value == {"greeting": "hello world"}

    @pytest.mark.parametrize(
        "text",
        [
            "a = 1\na = 2\n",
            "[a]\n[a]\n",
            "a = 1\n[a]\n",
            'a = "unterminated\n',
            "a = [1, 2\n",
        ],
    )
    def test_parse_errors(self, plugins, text):
        """Test structural errors raise ParseError."""
        with pytest.raises(ParseError):
            plugins["toml"].parse(text)

    def test_format(self, plugins, options):
        """Test root pairs first, then tables and arrays of tables."""
        text = plugins["toml"].format(
            {"title": "x", "owner": {"name": "T"}, "items": [{"n": 1}, {"n": 2}]},
            options,
        )

        assert text == (
            'title = "x"\n\n[owner]\nname = "T"\n\n[[items]]\nn = 1\n\n[[items]]\nn = 2\n'
        )

    def test_format_null_is_error(self, plugins, options):
        """Test null has no TOML spelling."""
        with pytest.raises(FormatError):
            plugins["toml"].format({"a": None}, options)

    def test_round_trip(self, plugins, options):
        """Test parse, format, parse yields an equal value."""
        fmt = plugins["toml"]
        first = fmt.parse(TOML_DOC)

        assert fmt.parse(fmt.format(first, options)) == first

    def test_empty_is_invalid(self, plugins):
        """Test an empty document fails validation."""
        fmt = plugins["toml"]
        assert not fmt.validate(fmt.parse("# only a comment\n")).valid

    def test_matches(self, plugins):
        """Test section headers and key/value lines are claimed."""
        assert plugins["toml"].matches("[server]\nport = 80")
        assert plugins["toml"].matches("name = 'x'")
        assert not plugins["toml"].matches("just words")
