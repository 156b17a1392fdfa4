"""Core data structures for the JadeMark translator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union


class BlockKind(Enum):
    """Closed set of block kinds produced by the segmenter."""

    TEXT = "text"
    CODE = "code"
    HEADING = "heading"
    SEPARATOR = "separator"


class JobKind(Enum):
    BATCH = "batch"
    SINGLETON = "singleton"


class JobState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Block:
    """A contiguous, typed unit of a segmented document.

    ``raw`` is the exact source text of the block; ``content`` is the part
    that is sent for translation (heading text without its marker, code
    without its fences).
    """

    kind: BlockKind
    content: str
    raw: str
    header_prefix: str = ""
    code_language: str = ""
    terminated: bool = True

    @property
    def translatable(self) -> bool:
        return self.kind is not BlockKind.SEPARATOR


IndexedBlock = Tuple[Block, int]


@dataclass
class Job:
    """A unit of dispatch: several small blocks or one isolated block."""

    job_id: int
    kind: JobKind
    items: Tuple[IndexedBlock, ...]
    state: JobState = JobState.PENDING

    @property
    def size(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Annotation:
    """A user remark anchored to a block's content hash and character range."""

    id: str
    text: str
    note: str
    timestamp: int
    context_hash: str
    start_offset: int
    end_offset: int
    global_start_offset: Optional[int] = None
    global_end_offset: Optional[int] = None


@dataclass(frozen=True)
class Highlight:
    """A non-overlapping highlighted range inside a block's plain text."""

    start: int
    end: int
    annotation_id: str
    note: str = ""


@dataclass(frozen=True)
class Progress:
    current: int
    total: int

    @property
    def fraction(self) -> float:
        return self.current / max(self.total, 1)


@dataclass(frozen=True)
class TransformSettings:
    """The transformation configuration a cache generation is valid for."""

    provider: str = "google-free"
    base_url: str = ""
    api_key: str = field(default="", repr=False)
    model: str = ""
    target_language: str = "Simplified Chinese"
    target_language_code: str = "zh-CN"
    concurrency: int = 3
    batch_size: int = 10
    size_threshold: int = 1000
    stream_interval: float = 0.1

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.size_threshold < 1:
            raise ValueError("size_threshold must be at least 1")


DeltaCallback = Callable[[str], None]
ProgressCallback = Callable[[Progress], None]
SnapshotCallback = Callable[[str], None]


@dataclass
class RenderNode:
    """An element of the rendered inline tree; text leaves are plain strings."""

    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: List[Union["RenderNode", str]] = field(default_factory=list)

    def text_content(self) -> str:
        return "".join(
            child if isinstance(child, str) else child.text_content()
            for child in self.children
        )

    def with_children(self, children: List[Union["RenderNode", str]]) -> "RenderNode":
        return RenderNode(tag=self.tag, attrs=dict(self.attrs), children=children)

    def find_all(self, tag: str) -> List["RenderNode"]:
        found: List[RenderNode] = []
        for child in self.children:
            if isinstance(child, RenderNode):
                if child.tag == tag:
                    found.append(child)
                found.extend(child.find_all(tag))
        return found
