"""Self-contained HTML page for a render result.

The page embeds its own CSS and JS (no external requests). Rendered
fragments from the pipeline are already escaped; everything else that
comes from the document or the config goes through :mod:`fileview.markup`
here.
"""

import logging

from .config import FileviewConfig, TemplateConfig
from .markup import escape_attr, escape_for_script_block, escape_html
from .pipeline import RenderResult
from .search import SearchOverlay
from .table import render_table

logger = logging.getLogger(__name__)

VIEWS = ("table", "tree", "formatted", "raw")


def render_page(
    result: RenderResult,
    filename: str = "untitled",
    config: FileviewConfig | None = None,
    view: str | None = None,
    search: str | None = None,
    line_numbers: bool | None = None,
) -> str:
    """Generate a complete HTML document for a render result.

    Args:
        result: Output of :meth:`Pipeline.render`.
        filename: Name shown in the header.
        config: Optional configuration (template and defaults).
        view: Initially visible pane: "table" (CSV only), "tree", "formatted"
            or "raw".
        search: Term to highlight before the page is shown.
        line_numbers: Show a line number gutter on text panes.

    Returns:
        Complete HTML string.
    """
    config = config or FileviewConfig()
    template = config.template
    if view is None:
        view = config.defaults.view
    if line_numbers is None:
        line_numbers = config.defaults.line_numbers
    table_markup = None
    if result.format_id == "csv" and result.value is not None:
        table_markup = render_table(result.value)
    if view == "table" and table_markup is None:
        view = "tree"
    if view == "tree" and result.tree_markup is None:
        view = "formatted"
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view}")

    tree_markup = result.tree_markup
    formatted_markup = result.highlight_markup
    raw_markup = escape_html(result.raw_text)
    match_count = 0
    if search:
        panes = []
        for markup in (table_markup, tree_markup, formatted_markup, raw_markup):
            if markup is None:
                panes.append(None)
                continue
            overlay = SearchOverlay(markup)
            match_count += overlay.apply_highlight(search)
            panes.append(overlay.markup)
        table_markup, tree_markup, formatted_markup, raw_markup = panes
        logger.debug("Page search %r: %d match(es)", search, match_count)

    title = template.title or filename
    format_label = (result.format_id or "text").upper()
    formatted_text = (
        result.formatted_text if result.formatted_text is not None else result.raw_text
    )

    available = {"table": table_markup is not None, "tree": tree_markup is not None}
    header = _header(format_label, filename, view, available, search)
    banner = _error_banner(result)
    body = "".join(
        [
            _pane("table", view, table_markup) if table_markup is not None else "",
            _pane("tree", view, tree_markup) if tree_markup is not None else "",
            _text_pane("formatted", view, formatted_markup, formatted_text, line_numbers),
            _text_pane("raw", view, raw_markup, result.raw_text, line_numbers),
        ]
    )
    status = _status_bar(result, match_count if search else None)
    css = escape_for_script_block(_get_page_css(template))
    js = escape_for_script_block(_get_page_js())

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{escape_html(title)}</title>
  <style data-fileview-runtime>{css}</style>
</head>
<body>
  <div class="fv-container" data-theme="{escape_attr(template.theme)}" data-view="{view}"
       data-filename="{escape_attr(filename)}">
{header}{banner}
    <div class="fv-content-wrapper">{body}</div>
{status}
  </div>
  <script data-fileview-runtime>
{js}
  </script>
</body>
</html>"""


def _header(
    format_label: str,
    filename: str,
    view: str,
    available: dict[str, bool],
    search: str | None,
) -> str:
    buttons = []
    for name in VIEWS:
        if not available.get(name, True):
            continue
        active = " active" if name == view else ""
        buttons.append(
            f'<button class="fv-btn{active}" data-action="view" '
            f'data-view="{name}">{name.capitalize()}</button>'
        )
    value = f' value="{escape_attr(search)}"' if search else ""
    return f"""    <div class="fv-header">
      <div class="fv-header-left">
        <span class="fv-format-badge">{escape_html(format_label)}</span>
        <span class="fv-filename">{escape_html(filename)}</span>
      </div>
      <div class="fv-header-controls">
        <input class="fv-search" type="search" placeholder="Search"{value}>
        {''.join(buttons)}
        <button class="fv-btn" data-action="copy" title="Copy visible content">Copy</button>
        <button class="fv-btn" data-action="download" title="Download visible content">Download</button>
        <button class="fv-btn" data-action="toggle-theme" title="Toggle theme">Theme</button>
      </div>
    </div>
"""


def _error_banner(result: RenderResult) -> str:
    if not result.error:
        return ""
    kind = result.error_kind.value if result.error_kind else "error"
    return f"""    <div class="fv-error-bar" data-error-kind="{escape_attr(kind)}">
      <span class="fv-error-icon">&#9888;</span>
      <span class="fv-error-message">{escape_html(result.error)}</span>
      <button class="fv-error-dismiss" data-action="dismiss" title="Dismiss">&#215;</button>
    </div>
"""


def _pane(name: str, view: str, markup: str) -> str:
    hidden = "" if name == view else " hidden"
    return f'<div class="fv-pane fv-pane-{name}" data-pane="{name}"{hidden}>{markup}</div>'


def _text_pane(
    name: str, view: str, markup: str, text: str, line_numbers: bool
) -> str:
    gutter = ""
    if line_numbers:
        count = text.count("\n") + 1
        numbers = "".join(
            f'<span class="fv-line-number">{i}</span>' for i in range(1, count + 1)
        )
        gutter = f'<div class="fv-line-numbers-wrapper">{numbers}</div>'
    inner = f'{gutter}<pre class="fv-content"><code>{markup}</code></pre>'
    return _pane(name, view, inner)


def _status_bar(result: RenderResult, match_count: int | None) -> str:
    items = [
        f"Lines: {result.metadata.get('lines', 0):,}",
        f"Size: {result.metadata.get('size', '')}",
    ]
    extra = [
        f"{key}: {value}"
        for key, value in result.metadata.items()
        if key not in ("lines", "size", "bytes")
    ]
    if extra:
        items.append(" | ".join(extra))
    if result.detection_reason is not None:
        items.append(f"Detected by: {result.detection_reason.value}")
    spans = "".join(
        f'<span class="fv-status-item">{escape_html(item)}</span>' for item in items
    )
    count = "" if match_count is None else f"{match_count} match(es)"
    return (
        f'    <div class="fv-status-bar">{spans}'
        f'<span class="fv-status-item fv-match-count">{count}</span></div>'
    )


def _get_page_css(template: TemplateConfig) -> str:
    """Page chrome, highlight token colors and tree styles."""
    return f"""
/* fileview page styles */
:root {{
  --fv-color-primary: {template.color_primary};
  --fv-color-secondary: {template.color_secondary};
}}
* {{ margin: 0; padding: 0; box-sizing: border-box; }}
body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; }}

.fv-container {{
  --fv-bg: #ffffff; --fv-fg: #24292e; --fv-muted: #6a737d; --fv-border: #e1e4e8;
  --fv-bar: #f6f8fa;
  --fv-string: #032f62; --fv-number: #005cc5; --fv-boolean: #d73a49;
  --fv-null: #6f42c1; --fv-key: #22863a; --fv-comment: #6a737d;
  --fv-tag: #22863a; --fv-attribute: #6f42c1;
  min-height: 100vh; background: var(--fv-bg); color: var(--fv-fg);
}}
.fv-container[data-theme="dark"] {{
  --fv-bg: #1e1e1e; --fv-fg: #d4d4d4; --fv-muted: #858585; --fv-border: #3c3c3c;
  --fv-bar: #252526;
  --fv-string: #ce9178; --fv-number: #b5cea8; --fv-boolean: #569cd6;
  --fv-null: #569cd6; --fv-key: #9cdcfe; --fv-comment: #6a9955;
  --fv-tag: #569cd6; --fv-attribute: #9cdcfe;
}}
@media (prefers-color-scheme: dark) {{
  .fv-container[data-theme="auto"] {{
    --fv-bg: #1e1e1e; --fv-fg: #d4d4d4; --fv-muted: #858585; --fv-border: #3c3c3c;
    --fv-bar: #252526;
    --fv-string: #ce9178; --fv-number: #b5cea8; --fv-boolean: #569cd6;
    --fv-null: #569cd6; --fv-key: #9cdcfe; --fv-comment: #6a9955;
    --fv-tag: #569cd6; --fv-attribute: #9cdcfe;
  }}
}}

.fv-header {{
  position: sticky; top: 0; z-index: 100;
  display: flex; align-items: center; justify-content: space-between;
  gap: 0.75rem; padding: 0.5rem 1rem;
  background: var(--fv-bar); border-bottom: 1px solid var(--fv-border);
  font-size: 0.85rem;
}}
.fv-header-left, .fv-header-controls {{ display: flex; align-items: center; gap: 0.5rem; }}
.fv-format-badge {{
  padding: 0.15rem 0.5rem; border-radius: 3px; color: white; font-weight: 600;
  background: linear-gradient(135deg, var(--fv-color-primary), var(--fv-color-secondary));
}}
.fv-filename {{ font-family: 'Consolas', 'Monaco', monospace; font-weight: 600; }}
.fv-btn {{
  padding: 0.3rem 0.75rem; border: none; border-radius: 3px; cursor: pointer;
  background: var(--fv-color-primary); color: white; font-size: 0.8rem;
}}
.fv-btn:hover {{ opacity: 0.85; }}
.fv-btn.active {{ background: #555; }}
.fv-search {{
  padding: 0.3rem 0.5rem; border: 1px solid var(--fv-border); border-radius: 3px;
  background: var(--fv-bg); color: var(--fv-fg);
}}

.fv-error-bar {{
  display: flex; align-items: center; gap: 0.5rem; padding: 0.5rem 1rem;
  background: #fff3cd; color: #856404; border-bottom: 1px solid #ffeeba;
}}
.fv-error-message {{ flex: 1; font-family: monospace; }}
.fv-error-dismiss {{ border: none; background: none; cursor: pointer; font-size: 1.1rem; }}

.fv-content-wrapper {{ padding: 1rem; }}
.fv-pane[hidden] {{ display: none; }}
.fv-pane-formatted, .fv-pane-raw {{ display: flex; }}
.fv-content {{
  flex: 1; margin: 0; white-space: pre-wrap; word-wrap: break-word;
  font-family: 'Consolas', 'Monaco', monospace; font-size: 0.9rem; line-height: 1.6;
}}
.fv-line-numbers-wrapper {{
  display: flex; flex-direction: column; padding-right: 0.75rem; margin-right: 0.75rem;
  border-right: 1px solid var(--fv-border); color: var(--fv-muted); text-align: right;
  font-family: 'Consolas', 'Monaco', monospace; font-size: 0.9rem; line-height: 1.6;
  user-select: none;
}}

.fv-string {{ color: var(--fv-string); }}
.fv-number {{ color: var(--fv-number); }}
.fv-boolean, .fv-keyword {{ color: var(--fv-boolean); }}
.fv-null {{ color: var(--fv-null); }}
.fv-key, .fv-class {{ color: var(--fv-key); font-weight: 500; }}
.fv-comment {{ color: var(--fv-comment); font-style: italic; }}
.fv-operator, .fv-punctuation {{ color: var(--fv-muted); }}
.fv-tag {{ color: var(--fv-tag); }}
.fv-attribute, .fv-variable, .fv-function {{ color: var(--fv-attribute); }}
.fv-error {{ color: #cb2431; text-decoration: underline wavy; }}

.fv-tree {{ font-family: 'Consolas', 'Monaco', monospace; font-size: 0.9rem; line-height: 1.6; }}
.fv-tree-line {{ display: flex; align-items: baseline; white-space: pre; }}
.fv-tree-indent {{ display: inline-block; width: 1.25rem; }}
.fv-tree-icon {{ cursor: pointer; width: 1rem; color: var(--fv-muted); user-select: none; }}
.fv-tree-key {{ color: var(--fv-key); }}
.fv-tree-colon, .fv-tree-bracket {{ color: var(--fv-muted); }}
.fv-tree-summary {{ display: none; color: var(--fv-muted); font-style: italic; padding: 0 0.25rem; }}
.fv-tree-collapsed > .fv-tree-line .fv-tree-summary {{ display: inline; }}
.fv-tree-collapsed > .fv-tree-children {{ display: none; }}
.fv-tree-value.string {{ color: var(--fv-string); }}
.fv-tree-value.number {{ color: var(--fv-number); }}
.fv-tree-value.boolean {{ color: var(--fv-boolean); }}
.fv-tree-value.null {{ color: var(--fv-null); }}

.fv-csv-wrapper {{ overflow-x: auto; }}
.fv-csv-table {{ border-collapse: collapse; font-size: 0.85rem; }}
.fv-csv-table th, .fv-csv-table td {{
  padding: 0.3rem 0.6rem; border: 1px solid var(--fv-border); text-align: left;
}}
.fv-csv-table th {{ background: var(--fv-bar); font-weight: 600; }}
.fv-csv-row-num {{ color: var(--fv-muted); text-align: right; user-select: none; }}
.fv-csv-numeric {{ color: var(--fv-number); text-align: right; font-family: monospace; }}
.fv-csv-summary {{ margin-top: 0.5rem; color: var(--fv-muted); font-size: 0.8rem; }}
.fv-toast {{
  position: fixed; bottom: 2.5rem; right: 1rem; padding: 0.4rem 0.8rem;
  border-radius: 3px; background: #333; color: white; font-size: 0.8rem;
}}

mark.fv-highlight {{ background: #ffeb3b; color: #000; border-radius: 2px; }}

.fv-status-bar {{
  position: sticky; bottom: 0; display: flex; gap: 1rem; padding: 0.35rem 1rem;
  background: var(--fv-bar); border-top: 1px solid var(--fv-border);
  color: var(--fv-muted); font-size: 0.8rem;
}}
.fv-match-count {{ margin-left: auto; }}
"""


def _get_page_js() -> str:
    """Tree toggles, view switching, copy and download, theme and search."""
    return """
// fileview page runtime
(function() {
  'use strict';
  var container = document.querySelector('.fv-container');
  var MIN_TERM = 2;

  function showView(name) {
    container.setAttribute('data-view', name);
    document.querySelectorAll('[data-pane]').forEach(function(pane) {
      pane.hidden = pane.getAttribute('data-pane') !== name;
    });
    document.querySelectorAll('[data-action="view"]').forEach(function(btn) {
      btn.classList.toggle('active', btn.getAttribute('data-view') === name);
    });
  }

  function toggleNode(icon) {
    var group = icon.closest('.fv-tree-node');
    if (!group) return;
    var collapsed = group.classList.toggle('fv-tree-collapsed');
    icon.textContent = collapsed ? '\\u25B6' : '\\u25BC';
  }

  function toggleTheme() {
    var current = container.getAttribute('data-theme');
    if (current === 'auto') {
      current = window.matchMedia('(prefers-color-scheme: dark)').matches ? 'dark' : 'light';
    }
    container.setAttribute('data-theme', current === 'dark' ? 'light' : 'dark');
  }

  function visibleText() {
    var pane = document.querySelector('[data-pane]:not([hidden])');
    if (!pane) return '';
    var code = pane.querySelector('code');
    return code ? code.textContent : pane.innerText;
  }

  function showToast(message) {
    var toast = document.createElement('div');
    toast.className = 'fv-toast';
    toast.textContent = message;
    document.body.appendChild(toast);
    setTimeout(function() { toast.remove(); }, 2000);
  }

  function copyContent() {
    if (!navigator.clipboard) return;
    navigator.clipboard.writeText(visibleText()).then(function() {
      showToast('Copied to clipboard');
    });
  }

  function downloadContent() {
    var blob = new Blob([visibleText()], { type: 'text/plain' });
    var url = URL.createObjectURL(blob);
    var link = document.createElement('a');
    link.href = url;
    link.download = 'formatted_' + (container.getAttribute('data-filename') || 'untitled');
    link.click();
    URL.revokeObjectURL(url);
    showToast('File downloaded');
  }

  function clearHighlight() {
    document.querySelectorAll('mark.fv-highlight').forEach(function(mark) {
      var parent = mark.parentNode;
      parent.replaceChild(document.createTextNode(mark.textContent), mark);
      parent.normalize();
    });
  }

  function applyHighlight(term) {
    clearHighlight();
    var count = 0;
    if (!term || term.length < MIN_TERM) return count;
    var needle = term.toLowerCase();
    document.querySelectorAll('[data-pane]').forEach(function(pane) {
      var walker = document.createTreeWalker(pane, NodeFilter.SHOW_TEXT, null);
      var nodes = [];
      while (walker.nextNode()) nodes.push(walker.currentNode);
      nodes.forEach(function(node) {
        var text = node.nodeValue;
        var lower = text.toLowerCase();
        var index = lower.indexOf(needle);
        if (index === -1) return;
        var fragment = document.createDocumentFragment();
        var last = 0;
        while (index !== -1) {
          if (index > last) fragment.appendChild(document.createTextNode(text.slice(last, index)));
          var mark = document.createElement('mark');
          mark.className = 'fv-highlight';
          mark.textContent = text.slice(index, index + term.length);
          fragment.appendChild(mark);
          count++;
          last = index + term.length;
          index = lower.indexOf(needle, last);
        }
        if (last < text.length) fragment.appendChild(document.createTextNode(text.slice(last)));
        node.parentNode.replaceChild(fragment, node);
      });
    });
    return count;
  }

  document.addEventListener('click', function(event) {
    var target = event.target.closest('[data-action]');
    if (!target) return;
    switch (target.getAttribute('data-action')) {
      case 'toggle': toggleNode(target); break;
      case 'view': showView(target.getAttribute('data-view')); break;
      case 'copy': copyContent(); break;
      case 'download': downloadContent(); break;
      case 'toggle-theme': toggleTheme(); break;
      case 'dismiss':
        var bar = target.closest('.fv-error-bar');
        if (bar) bar.remove();
        break;
    }
  });

  var search = document.querySelector('.fv-search');
  var counter = document.querySelector('.fv-match-count');
  if (search) {
    search.addEventListener('input', function() {
      var count = applyHighlight(search.value);
      if (counter) counter.textContent = search.value.length >= MIN_TERM ? count + ' match(es)' : '';
    });
  }
})();
"""
