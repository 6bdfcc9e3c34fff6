from __future__ import annotations

import re
from enum import Enum
from typing import Final


class ContentClassification(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


TEXT_TYPES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^text/"),
    re.compile(r"^application/json$"),
    re.compile(r"^application/xml$"),
    re.compile(r"^application/javascript$"),
)

IMAGE_TYPES: Final[tuple[re.Pattern[str], ...]] = (re.compile(r"^image/"),)


def is_text_type(content_type: str) -> bool:
    return any(rx.search(content_type) for rx in TEXT_TYPES)


def is_image_type(content_type: str) -> bool:
    return any(rx.search(content_type) for rx in IMAGE_TYPES)


def classify_content_type(content_type: str | None) -> ContentClassification:
    """Classify a raw Content-Type header value.

    The value is matched as sent (parameters included), so ``text/plain; charset=utf-8``
    is text while ``application/json; charset=utf-8`` is unsupported. Text patterns win
    over image patterns.
    """

    value = content_type or ""
    if is_text_type(value):
        return ContentClassification.TEXT
    if is_image_type(value):
        return ContentClassification.IMAGE
    return ContentClassification.UNSUPPORTED
