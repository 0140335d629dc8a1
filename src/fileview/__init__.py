"""fileview - Detect, format, highlight and tree-render structured text files."""

__version__ = "0.1.0"

from .detector import DetectionReason, DetectionResult, FormatDescriptor, FormatRegistry
from .errors import ErrorKind, FileviewError
from .formatter import FormatOptions, FormatterRegistry
from .highlight import HighlighterRegistry, Token, TokenKind
from .pipeline import Pipeline, RenderRequest, RenderResult, build_pipeline
from .search import SearchOverlay
from .tree import build_tree, render_tree, tree_to_text

__all__ = [
    "FormatRegistry",
    "FormatDescriptor",
    "DetectionReason",
    "DetectionResult",
    "FormatterRegistry",
    "FormatOptions",
    "HighlighterRegistry",
    "Token",
    "TokenKind",
    "Pipeline",
    "RenderRequest",
    "RenderResult",
    "build_pipeline",
    "SearchOverlay",
    "build_tree",
    "render_tree",
    "tree_to_text",
    "ErrorKind",
    "FileviewError",
    "__version__",
]
