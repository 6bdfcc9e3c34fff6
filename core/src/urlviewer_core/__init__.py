from urlviewer_core.classify import ContentClassification, classify_content_type
from urlviewer_core.config import ViewerConfig, load_viewer_config
from urlviewer_core.errors import (
    SizeLimitError,
    UnsupportedTypeError,
    UpstreamError,
    ValidationError,
    ViewerError,
)
from urlviewer_core.home import ViewerPaths, ensure_viewer_layout, resolve_viewer_home
from urlviewer_core.relay import MAX_SIZE, collect_text, escape_html, relay_stream

__version__ = "0.1.0"

__all__ = [
    "MAX_SIZE",
    "ContentClassification",
    "SizeLimitError",
    "UnsupportedTypeError",
    "UpstreamError",
    "ValidationError",
    "ViewerConfig",
    "ViewerError",
    "ViewerPaths",
    "__version__",
    "classify_content_type",
    "collect_text",
    "ensure_viewer_layout",
    "escape_html",
    "load_viewer_config",
    "relay_stream",
    "resolve_viewer_home",
]
