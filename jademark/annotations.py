"""Content-anchored annotations and their highlight overlays."""

from __future__ import annotations

import csv
import time
import uuid
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple, Union

from .structures import Annotation, Highlight, RenderNode

OPAQUE_TAGS = frozenset({"code"})
MARK_TAG = "mark"
CSV_HEADER = ("Original Text", "Remark", "Date")

RenderChild = Union[RenderNode, str]


def _now_ms() -> int:
    return int(time.time() * 1000)


def create_annotation(
    text: str,
    note: str,
    context_hash: str,
    start_offset: int,
    end_offset: int,
    *,
    global_start_offset: Optional[int] = None,
    global_end_offset: Optional[int] = None,
    clock: Callable[[], int] = _now_ms,
) -> Annotation:
    """Build an annotation from a user selection.

    Offsets are trusted as given; they are not checked against the block's
    current content.
    """

    return Annotation(
        id=uuid.uuid4().hex,
        text=text,
        note=note,
        timestamp=clock(),
        context_hash=context_hash,
        start_offset=start_offset,
        end_offset=end_offset,
        global_start_offset=global_start_offset,
        global_end_offset=global_end_offset,
    )


class AnnotationStore:
    """Ordered, session-owned collection of annotations."""

    def __init__(self, annotations: Iterable[Annotation] = ()) -> None:
        self._annotations: List[Annotation] = list(annotations)

    def add(
        self,
        text: str,
        note: str,
        context_hash: str,
        start_offset: int,
        end_offset: int,
        **kwargs,
    ) -> Annotation:
        annotation = create_annotation(
            text, note, context_hash, start_offset, end_offset, **kwargs
        )
        self._annotations.append(annotation)
        return annotation

    def remove(self, annotation_id: str) -> bool:
        before = len(self._annotations)
        self._annotations = [a for a in self._annotations if a.id != annotation_id]
        return len(self._annotations) != before

    def clear(self) -> None:
        self._annotations.clear()

    def for_hash(self, context_hash: str) -> List[Annotation]:
        return [a for a in self._annotations if a.context_hash == context_hash]

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations))

    def __len__(self) -> int:
        return len(self._annotations)


def compute_highlights(
    text: str,
    context_hash: str,
    annotations: Iterable[Annotation],
) -> List[Highlight]:
    """Return ordered, non-overlapping highlight ranges for one block.

    Matching annotations are visited by ascending start offset; each one only
    claims the part of its range not already claimed by an earlier one, and
    everything is clipped to the block's bounds.

    Offsets are 0-based and end-exclusive, as browser selection offsets are:
    5 to 9 over "hello world" covers " wor".
    """

    relevant = sorted(
        (a for a in annotations if a.context_hash == context_hash),
        key=lambda a: a.start_offset,
    )
    length = len(text)
    cursor = 0
    highlights: List[Highlight] = []
    for annotation in relevant:
        start = max(annotation.start_offset, cursor)
        end = min(annotation.end_offset, length)
        if start >= end:
            continue
        highlights.append(
            Highlight(start=start, end=end, annotation_id=annotation.id, note=annotation.note)
        )
        cursor = end
    return highlights


def _mark_text(text: str, highlights: Sequence[Highlight], offset: int) -> List[RenderChild]:
    end = offset + len(text)
    pieces: List[RenderChild] = []
    cursor = offset
    for highlight in highlights:
        if highlight.end <= offset or highlight.start >= end:
            continue
        start = max(highlight.start, cursor)
        stop = min(highlight.end, end)
        if start >= stop:
            continue
        if start > cursor:
            pieces.append(text[cursor - offset : start - offset])
        pieces.append(
            RenderNode(
                tag=MARK_TAG,
                attrs={"data-annotation-id": highlight.annotation_id, "title": highlight.note},
                children=[text[start - offset : stop - offset]],
            )
        )
        cursor = stop
    if cursor < end:
        pieces.append(text[cursor - offset :])
    return pieces


def highlight_children(
    children: Sequence[RenderChild],
    highlights: Sequence[Highlight],
    offset: int = 0,
) -> Tuple[List[RenderChild], int]:
    """Highlight a sibling list; returns the new children and characters consumed."""

    rendered: List[RenderChild] = []
    consumed = 0
    for child in children:
        if isinstance(child, str):
            rendered.extend(_mark_text(child, highlights, offset + consumed))
            consumed += len(child)
        else:
            node, used = highlight_node(child, highlights, offset + consumed)
            rendered.append(node)
            consumed += used
    return rendered, consumed


def highlight_node(
    node: RenderNode,
    highlights: Sequence[Highlight],
    offset: int = 0,
) -> Tuple[RenderNode, int]:
    """Depth-first highlight of ``node`` starting at absolute ``offset``.

    Offsets are relative to the flattened text of the whole block. Code
    elements are opaque: their text advances the offset but is left intact.
    """

    if node.tag in OPAQUE_TAGS:
        return node, len(node.text_content())
    children, consumed = highlight_children(node.children, highlights, offset)
    return node.with_children(children), consumed


def export_rows(annotations: Iterable[Annotation]) -> List[Tuple[str, str, int]]:
    return [(a.text, a.note, a.timestamp) for a in annotations]


def _format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def write_csv(annotations: Iterable[Annotation], stream: TextIO) -> int:
    """Write annotations as BOM-prefixed, fully quoted CSV; returns the row count."""

    rows = export_rows(annotations)
    stream.write("\ufeff")
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for text, note, timestamp in rows:
        writer.writerow((text, note, _format_timestamp(timestamp)))
    return len(rows)
