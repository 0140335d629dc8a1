"""Tests for fileview.page module."""

import pytest

from fileview.config import DefaultsConfig, FileviewConfig, TemplateConfig
from fileview.page import render_page
from fileview.pipeline import RenderRequest, build_pipeline


@pytest.fixture(scope="module")
def pipeline():
    return build_pipeline()


@pytest.fixture
def json_result(pipeline):
    return pipeline.render(RenderRequest('{"name": "alpha"}', url="data.json"))


class TestRenderPage:
    """Tests for render_page function."""

    def test_complete_document(self, json_result):
        """Test the page is a full HTML document with a format badge."""
        html = render_page(json_result, filename="data.json")

        assert html.startswith("<!DOCTYPE html>")
        assert html.rstrip().endswith("</html>")
        assert '<span class="fv-format-badge">JSON</span>' in html
        assert '<span class="fv-filename">data.json</span>' in html

    def test_filename_escaped(self, json_result):
        """Test the filename cannot inject markup."""
        html = render_page(json_result, filename="<b>x</b>.json")

        assert "<b>x</b>" not in html
        assert "&lt;b&gt;x&lt;/b&gt;.json" in html

    def test_tree_pane_active(self, json_result):
        """Test the tree pane is shown and the others are hidden."""
        html = render_page(json_result, filename="data.json")

        assert 'data-pane="tree">' in html
        assert 'data-pane="formatted" hidden>' in html
        assert 'data-pane="raw" hidden>' in html
        assert 'data-view="tree">Tree</button>' in html
        assert 'class="fv-btn active" data-action="view" data-view="tree"' in html

    def test_view_argument(self, json_result):
        """Test the initially visible pane can be chosen."""
        html = render_page(json_result, view="raw")

        assert 'data-pane="raw">' in html
        assert 'data-pane="tree" hidden>' in html

    def test_view_from_config(self, json_result):
        """Test the default view comes from the config."""
        config = FileviewConfig(defaults=DefaultsConfig(view="formatted"))

        html = render_page(json_result, config=config)

        assert 'data-view="formatted">' in html
        assert 'data-pane="formatted">' in html

    def test_invalid_view(self, json_result):
        """Test an unknown view is rejected."""
        with pytest.raises(ValueError, match="Unknown view"):
            render_page(json_result, view="grid")

    def test_error_banner(self, pipeline):
        """Test a parse error shows a banner and falls back to formatted."""
        result = pipeline.render(RenderRequest('{"a": }', url="bad.json"))

        html = render_page(result, filename="bad.json")

        assert 'data-error-kind="parse_error"' in html
        assert "fv-error-message" in html
        assert 'data-pane="tree"' not in html
        assert 'data-pane="formatted">' in html

    def test_no_banner_on_success(self, json_result):
        """Test no banner is shown when rendering succeeded."""
        assert "data-error-kind" not in render_page(json_result)

    def test_search(self, json_result):
        """Test search marks appear in every pane and are counted."""
        html = render_page(json_result, search="ALPHA")

        assert '<mark class="fv-highlight">alpha</mark>' in html
        assert "3 match(es)" in html
        assert 'value="ALPHA"' in html

    def test_line_numbers(self, json_result):
        """Test the line number gutter can be turned off."""
        assert "fv-line-numbers-wrapper" in render_page(json_result)
        assert "fv-line-numbers-wrapper" not in render_page(
            json_result, line_numbers=False
        )

    def test_title_escaped(self, json_result):
        """Test a configured title cannot open a script block."""
        config = FileviewConfig(template=TemplateConfig(title="<script>alert(1)</script>"))

        html = render_page(json_result, config=config)

        assert "<title>&lt;script&gt;alert(1)&lt;/script&gt;</title>" in html
        assert "<script>alert(1)" not in html

    def test_theme(self, json_result):
        """Test the configured theme lands on the container."""
        config = FileviewConfig(template=TemplateConfig(theme="dark"))

        assert 'data-theme="dark"' in render_page(json_result, config=config)

    def test_status_bar(self, json_result):
        """Test metadata and the detection reason are shown."""
        html = render_page(json_result)

        assert "Lines: 1" in html
        assert "Detected by: extension" in html

    def test_csv_table_pane(self, pipeline):
        """Test CSV gets a table pane that can be shown first."""
        result = pipeline.render(
            RenderRequest("name,age\n7,30\n<bob>,41", url="people.csv")
        )

        html = render_page(result, filename="people.csv", view="table")

        assert 'data-pane="table">' in html
        assert 'data-pane="tree" hidden>' in html
        assert 'class="fv-btn active" data-action="view" data-view="table"' in html
        assert '<td class="fv-csv-numeric">30</td>' in html
        assert "&lt;bob&gt;" in html
        assert "Rows: 3 | Columns: 2" in html

    def test_table_view_falls_back(self, json_result):
        """Test asking for a table on non-CSV shows the tree instead."""
        html = render_page(json_result, view="table")

        assert 'data-pane="table"' not in html
        assert 'data-view="table"' not in html
        assert 'data-pane="tree">' in html

    def test_copy_and_download_actions(self, json_result):
        """Test the header carries copy and download buttons."""
        html = render_page(json_result, filename="data.json")

        assert 'data-action="copy"' in html
        assert 'data-action="download"' in html
        assert 'data-filename="data.json"' in html

    def test_plain_text(self, pipeline):
        """Test undetected text renders as TEXT without a tree."""
        result = pipeline.render(RenderRequest("plain <words>"))

        html = render_page(result)

        assert '<span class="fv-format-badge">TEXT</span>' in html
        assert "plain &lt;words&gt;" in html
        assert 'data-pane="tree"' not in html
