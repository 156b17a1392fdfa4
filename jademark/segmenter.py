"""Markdown block segmentation and length-bounded splitting."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from .structures import Block, BlockKind

logger = logging.getLogger(__name__)

FENCE_OPEN_PATTERN = re.compile(
    r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})[ \t]*(?P<info>[^`\s]*)"
)
FENCE_CLOSE_PATTERN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})[ \t]*$")
HEADING_PATTERN = re.compile(r"^(?P<prefix>#{1,6}[ \t]+)(?P<content>.*)$")


def _closes_fence(line: str, opening: str) -> bool:
    """Return True when the line closes a fence opened with ``opening``."""

    match = FENCE_CLOSE_PATTERN.match(line)
    if not match:
        return False
    fence = match.group("fence")
    return fence[0] == opening[0] and len(fence) >= len(opening)


def _code_block(lines: Sequence[str], language: str, terminated: bool) -> Block:
    body = lines[1:-1] if terminated else lines[1:]
    return Block(
        kind=BlockKind.CODE,
        content="\n".join(body),
        raw="\n".join(lines),
        code_language=language,
        terminated=terminated,
    )


def segment_document(text: str) -> List[Block]:
    """Split a Markdown document into an ordered list of typed blocks.

    The scan is a single forward pass over lines with no lookahead. Joining
    every block's ``raw`` with newlines reproduces ``text`` exactly.
    """

    blocks: List[Block] = []
    text_buffer: List[str] = []
    code_lines: Optional[List[str]] = None
    opening_fence = ""
    language = ""

    def flush_text() -> None:
        if text_buffer:
            raw = "\n".join(text_buffer)
            blocks.append(Block(kind=BlockKind.TEXT, content=raw, raw=raw))
            text_buffer.clear()

    for line in text.split("\n"):
        if code_lines is not None:
            code_lines.append(line)
            if _closes_fence(line, opening_fence):
                blocks.append(_code_block(code_lines, language, terminated=True))
                code_lines = None
            continue

        fence_match = FENCE_OPEN_PATTERN.match(line)
        if fence_match:
            flush_text()
            code_lines = [line]
            opening_fence = fence_match.group("fence")
            language = fence_match.group("info")
            continue

        heading_match = HEADING_PATTERN.match(line)
        if heading_match:
            flush_text()
            blocks.append(
                Block(
                    kind=BlockKind.HEADING,
                    content=heading_match.group("content"),
                    raw=line,
                    header_prefix=heading_match.group("prefix"),
                )
            )
            continue

        if not line.strip():
            flush_text()
            blocks.append(Block(kind=BlockKind.SEPARATOR, content="", raw=line))
            continue

        text_buffer.append(line)

    flush_text()
    if code_lines is not None:
        logger.debug(
            "Unterminated code fence %r; treating the rest of the document as code.",
            opening_fence,
        )
        blocks.append(_code_block(code_lines, language, terminated=False))
    return blocks


def join_blocks(blocks: Sequence[Block]) -> str:
    """Reassemble blocks into document text."""

    return "\n".join(block.raw for block in blocks)


def split_for_length(text: str, budget: int) -> List[str]:
    """Greedily pack whole lines into chunks of at most ``budget`` characters.

    A single line longer than the budget is kept intact as its own chunk.
    Joining the chunks with newlines reproduces the input.
    """

    if len(text) <= budget:
        return [text]

    packed: List[str] = []
    current: Optional[str] = None
    for line in text.split("\n"):
        if current is None:
            current = line
            continue
        if len(current) + 1 + len(line) > budget and current:
            packed.append(current)
            current = line
        else:
            current = f"{current}\n{line}"
    if current is not None:
        packed.append(current)
    return packed
