"""The canonical escape primitive for all generated markup.

Highlighter output, tree markup (serialized by BeautifulSoup) and the
search overlay must agree on how text is escaped, otherwise re-parsing
rendered output would not reproduce it byte for byte. Everything goes
through BeautifulSoup's minimal formatter substitution.
"""

from bs4.dammit import EntitySubstitution


def escape_html(text: str) -> str:
    """Escape ``&``, ``<`` and ``>`` for use in element content."""
    return EntitySubstitution.substitute_xml(text)


def escape_attr(text: str) -> str:
    """Escape a string for a double-quoted attribute value."""
    return EntitySubstitution.substitute_xml(text).replace('"', "&quot;")


def escape_for_script_block(s: str) -> str:
    """Escape content for safe embedding inside a <script> or <style> block.

    Replaces ``</`` with ``<\\/`` to prevent premature closing of the
    enclosing HTML tag.
    """
    return s.replace("</", "<\\/")
