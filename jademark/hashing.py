"""Whitespace-normalised content identity for blocks.

The hash is a 32-bit djb2 over the UTF-16 code units of the normalised text.
It is a best-effort anchor, not a security boundary: with 2**32 buckets the
chance that two distinct blocks collide reaches about 1% only around 9,300
distinct blocks (birthday bound), which is far beyond a single document.
Blocks whose normalised content is equal always share a hash; that is an
accepted limitation of anchoring by content.
"""

from __future__ import annotations

import re

WHITESPACE_PATTERN = re.compile(r"\s+")

_DJB2_SEED = 5381
_MASK_32 = 0xFFFFFFFF


def normalise_content(text: str) -> str:
    """Collapse every whitespace run to one space and trim the ends."""

    return WHITESPACE_PATTERN.sub(" ", text.replace("\r\n", "\n")).strip()


def content_hash(text: str) -> str:
    """Return the hex digest identifying ``text`` after normalisation."""

    normalised = normalise_content(text).encode("utf-16-le")
    value = _DJB2_SEED
    for index in range(0, len(normalised), 2):
        unit = normalised[index] | (normalised[index + 1] << 8)
        value = ((value << 5) + value + unit) & _MASK_32
    return format(value, "x")
