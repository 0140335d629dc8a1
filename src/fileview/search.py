"""Search highlighting over already rendered markup.

The overlay works on text nodes only, so it applies equally to tree
markup and to highlighted raw text, and never splits or merges the
highlighter's own spans. Clearing unwraps every ``<mark>`` and merges
the text nodes back together, which restores the pristine markup.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, NavigableString

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 2
MARK_CLASS = "fv-highlight"


class SearchOverlay:
    """Case-insensitive search highlighting over a markup fragment.

    Usage:
        overlay = SearchOverlay(result.tree_markup)
        overlay.apply_highlight("needle")
        html = overlay.markup
    """

    def __init__(self, markup: str) -> None:
        self._soup = BeautifulSoup(markup, "html.parser")
        self.term: str | None = None
        self.match_count = 0

    @property
    def markup(self) -> str:
        return self._soup.decode()

    def clear_highlight(self) -> None:
        """Remove all search marks and restore the original text nodes."""
        for mark in self._soup.find_all("mark", class_=MARK_CLASS):
            parent = mark.parent
            if parent is None:
                continue
            mark.unwrap()
            parent.smooth()
        self.term = None
        self.match_count = 0

    def apply_highlight(self, term: str) -> int:
        """Highlight every occurrence of term, replacing any prior search.

        Terms shorter than two characters clear the highlight and match
        nothing.

        Returns:
            Number of highlighted occurrences.
        """
        self.clear_highlight()
        if not term or len(term) < MIN_TERM_LENGTH:
            return 0

        pattern = re.compile(re.escape(term), re.IGNORECASE)
        # Collect first: the tree is modified while replacing nodes.
        text_nodes = [
            s for s in self._soup.find_all(string=True) if type(s) is NavigableString
        ]

        count = 0
        for node in text_nodes:
            text = str(node)
            matches = list(pattern.finditer(text))
            if not matches:
                continue
            count += len(matches)
            node.replace_with(*self._split(text, matches))

        self.term = term
        self.match_count = count
        logger.debug("Search %r matched %d occurrence(s)", term, count)
        return count

    def _split(self, text: str, matches: list[re.Match]) -> list:
        pieces: list = []
        last = 0
        for match in matches:
            start, end = match.span()
            if start > last:
                pieces.append(NavigableString(text[last:start]))
            mark = self._soup.new_tag("mark", attrs={"class": MARK_CLASS})
            mark.string = text[start:end]
            pieces.append(mark)
            last = end
        if last < len(text):
            pieces.append(NavigableString(text[last:]))
        return pieces


def highlight_search(markup: str, term: str) -> str:
    """Return markup with term highlighted (one-shot helper)."""
    overlay = SearchOverlay(markup)
    overlay.apply_highlight(term)
    return overlay.markup
