"""Shrink request/response bodies before they reach the log."""

from __future__ import annotations

DEFAULT_MAX_LENGTH = 500

# Substrings that mean the body carries base64 image payloads.
IMAGE_DATA_MARKERS = (
    '"data:image',
    '"init_images"',
    '"mask"',
    '"images"',
    '"image"',
)


def contains_image_data(text: str) -> bool:
    return any(marker in text for marker in IMAGE_DATA_MARKERS)


def sanitize_for_logging(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Return ``text`` unchanged if short, else a placeholder or a truncation.

    Long bodies with image data collapse to a placeholder that only states the
    original length. Other long bodies are cut at ``max_length`` with a note
    saying how much was dropped.
    """
    length = len(text)
    if length <= max_length:
        return text

    if contains_image_data(text):
        return f"[Body with image data, length: {length} chars]"

    elided = length - max_length
    return f"{text[:max_length]}... [truncated {elided} chars, total length: {length} chars]"
