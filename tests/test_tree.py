"""Tests for fileview.tree module."""

from bs4 import BeautifulSoup

from fileview.tree import (
    COLLAPSED_ICON,
    EXPANDED_ICON,
    MappingNode,
    ScalarNode,
    SequenceNode,
    build_tree,
    render_tree,
    tree_to_text,
)


def _soup(markup):
    return BeautifulSoup(markup, "html.parser")


class TestBuildTree:
    """Tests for build_tree function."""

    def test_shapes(self):
        """Test mappings, sequences and scalars map to node types."""
        root = build_tree({"a": [1, {"b": None}], "c": "x"})

        assert isinstance(root, MappingNode)
        key, seq = root.entries[0]
        assert key == "a"
        assert isinstance(seq, SequenceNode)
        assert isinstance(seq.items[0], ScalarNode)
        assert isinstance(seq.items[1], MappingNode)
        assert root.entries[1] == ("c", ScalarNode("x"))

    def test_fresh_tree_is_expanded(self):
        """Test a new tree has no collapsed nodes."""
        root = build_tree({"a": {"b": [1]}})
        child = root.entries[0][1]

        assert not root.collapsed
        assert not child.collapsed
        assert not child.entries[0][1].collapsed

    def test_toggle_affects_only_that_node(self):
        """Test toggling collapses one node and leaves the rest alone."""
        root = build_tree({"a": {"b": [1]}})
        child = root.entries[0][1]

        child.toggle()

        assert child.collapsed
        assert not child.entries[0][1].collapsed
        child.toggle()
        assert not child.collapsed


class TestRenderTree:
    """Tests for render_tree function."""

    def test_row_count(self):
        """Test {"x": [1, 2, {"y": 3}]} renders five rows and two groups."""
        soup = _soup(render_tree({"x": [1, 2, {"y": 3}]}))

        rows = soup.select("div.fv-tree-line")
        groups = soup.select("div.fv-tree-node")
        keys = [k.get_text() for k in soup.select(".fv-tree-key")]

        assert len(rows) == 5
        assert len(groups) == 2
        assert keys == ['"x"', "0", "1", "2", '"y"']

    def test_group_header(self):
        """Test a group header shows brackets, item count and toggle icon."""
        soup = _soup(render_tree({"list": [1, 2, 3]}))
        header = soup.select_one("div.fv-tree-node > div.fv-tree-line")

        assert header.select_one(".fv-tree-icon").get_text() == EXPANDED_ICON
        assert header.select_one(".fv-tree-icon")["data-action"] == "toggle"
        assert [b.get_text() for b in header.select(".fv-tree-bracket")] == ["[", "]"]
        assert header.select_one(".fv-tree-summary").get_text() == "3 items"

    def test_root_has_no_group(self):
        """Test root entries render directly at depth 0."""
        soup = _soup(render_tree({"a": 1, "b": 2}))

        assert not soup.select("div.fv-tree-node")
        assert not soup.select(".fv-tree-indent")
        assert len(soup.select("div.fv-tree-line")) == 2

    def test_indentation_follows_depth(self):
        """Test nested rows carry one indent span per level."""
        soup = _soup(render_tree({"a": {"b": {"c": 1}}}))
        rows = soup.select("div.fv-tree-line")

        assert [len(r.select(".fv-tree-indent")) for r in rows] == [0, 1, 2]

    def test_scalar_kinds(self):
        """Test scalar values are classed by kind and strings are quoted."""
        soup = _soup(render_tree({"s": "x", "n": 1.5, "b": False, "z": None}))
        values = soup.select(".fv-tree-value")

        assert [v["class"][1] for v in values] == ["string", "number", "boolean", "null"]
        assert [v.get_text() for v in values] == ['"x"', "1.5", "false", "null"]

    def test_scalar_root(self):
        """Test a scalar document renders one row."""
        soup = _soup(render_tree(42))

        assert len(soup.select("div.fv-tree-line")) == 1
        assert soup.select_one(".fv-tree-value").get_text() == "42"

    def test_empty_containers(self):
        """Test empty containers are plain rows, not groups."""
        soup = _soup(render_tree({"a": [], "b": {}}))

        assert not soup.select("div.fv-tree-node")
        assert [v.get_text() for v in soup.select(".fv-tree-value")] == ["[]", "{}"]

    def test_empty_root(self):
        """Test an empty root mapping renders a single row."""
        soup = _soup(render_tree({}))

        assert soup.select_one(".fv-tree-value").get_text() == "{}"

    def test_text_is_escaped(self):
        """Test keys and values from the document are escaped."""
        markup = render_tree({"<k>": "<script>&"})

        assert "<script>" not in markup
        assert "&lt;k&gt;" in markup
        assert "&lt;script&gt;&amp;" in markup

    def test_embedded_quotes_are_escaped(self):
        """Test quotes inside keys and strings are spelled as in JSON."""
        soup = _soup(render_tree({'a"b': 'say "hi"\n'}))

        assert soup.select_one(".fv-tree-key").get_text() == '"a\\"b"'
        assert soup.select_one(".fv-tree-value").get_text() == '"say \\"hi\\"\\n"'
        assert tree_to_text({'a"b': 'x"y'}) == '"a\\"b": "x\\"y"'

    def test_collapsed_state(self):
        """Test a collapsed node renders the collapsed class and icon."""
        root = build_tree({"a": [1, 2], "b": [3]})
        root.entries[0][1].toggle()

        soup = _soup(render_tree(root))
        groups = soup.select("div.fv-tree-node")

        assert "fv-tree-collapsed" in groups[0]["class"]
        assert groups[0].select_one(".fv-tree-icon").get_text() == COLLAPSED_ICON
        assert "fv-tree-collapsed" not in groups[1]["class"]

    def test_deep_nesting(self):
        """Test very deep values render without recursion limits."""
        value = 1
        for _ in range(1500):
            value = [value]

        markup = render_tree(value)

        assert markup.count('class="fv-tree-node"') == 1499

    def test_rebuilt_on_every_render(self):
        """Test rendering the same value twice gives identical markup."""
        value = {"a": [1, {"b": "c"}]}
        assert render_tree(value) == render_tree(value)


class TestTreeToText:
    """Tests for tree_to_text function."""

    def test_indented_lines(self):
        """Test plain text rendering of nested values."""
        text = tree_to_text({"a": 1, "b": [True, "x"]})

        assert text == '"a": 1\n"b": [2 items]\n  0: true\n  1: "x"'

    def test_collapsed_hides_children(self):
        """Test collapsed groups show only their summary."""
        root = build_tree({"b": {"c": 1}})
        root.entries[0][1].toggle()

        assert tree_to_text(root) == '"b": {1 items}'

    def test_indent_width(self):
        """Test custom indent width."""
        assert tree_to_text({"a": [1]}, indent=4) == '"a": [1 items]\n    0: 1'
