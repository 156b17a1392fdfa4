"""Partitioning of stale blocks into jobs and bounded-concurrency dispatch."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .cache import TranslationCache
from .errors import ErrorRecord, ProviderError
from .providers import TextTransformer, build_translation_instruction
from .stream import StreamAggregator
from .structures import (
    Block,
    BlockKind,
    IndexedBlock,
    Job,
    JobKind,
    JobState,
    Progress,
    ProgressCallback,
    SnapshotCallback,
    TransformSettings,
)

logger = logging.getLogger(__name__)

BATCH_MARKER = "<<<BATCH_SEP>>>"
BATCH_DELIMITER = f"\n\n{BATCH_MARKER}\n\n"

_pass_ids = itertools.count(1)


def find_stale_blocks(blocks: Sequence[Block], cache: TranslationCache) -> List[IndexedBlock]:
    """Return translatable blocks without a cache hit, in document order."""

    return [
        (block, index)
        for index, block in enumerate(blocks)
        if block.translatable and block.raw not in cache
    ]


def initial_segments(blocks: Sequence[Block], cache: TranslationCache) -> List[str]:
    """Cached translations where available, raw text elsewhere."""

    segments: List[str] = []
    for block in blocks:
        if block.kind is BlockKind.SEPARATOR:
            segments.append("")
            continue
        cached = cache.get(block.raw)
        segments.append(cached if cached is not None else block.raw)
    return segments


def _needs_isolation(block: Block, size_threshold: int) -> bool:
    if block.kind is BlockKind.CODE:
        return True
    if block.kind in (BlockKind.TEXT, BlockKind.HEADING):
        return len(block.content) > size_threshold
    raise ValueError(f"Block kind {block.kind} cannot be scheduled.")


def partition_jobs(
    stale: Iterable[IndexedBlock],
    *,
    batch_size: int,
    size_threshold: int = 1000,
) -> List[Job]:
    """Group stale blocks into batch and singleton jobs, in document order.

    Consecutive small text and heading blocks share a batch of at most
    ``batch_size`` items. Code blocks and blocks whose content exceeds
    ``size_threshold`` close the open batch and become singletons.
    """

    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    jobs: List[Job] = []
    current: List[IndexedBlock] = []

    def close_batch() -> None:
        if current:
            jobs.append(Job(job_id=len(jobs) + 1, kind=JobKind.BATCH, items=tuple(current)))
            current.clear()

    for item in stale:
        block, _ = item
        if _needs_isolation(block, size_threshold):
            close_batch()
            jobs.append(Job(job_id=len(jobs) + 1, kind=JobKind.SINGLETON, items=(item,)))
            continue
        current.append(item)
        if len(current) >= batch_size:
            close_batch()

    close_batch()
    return jobs


def split_batch_result(translated: str, expected: int) -> List[Optional[str]]:
    """Split a batch response back into one translation per item.

    Missing or empty parts come back as None so the caller keeps the item's
    original content; extra parts are ignored.
    """

    parts = translated.split(BATCH_MARKER)
    if len(parts) != expected:
        logger.info(
            "Batch split mismatch: expected %d parts, received %d.",
            expected,
            len(parts),
        )
    results: List[Optional[str]] = []
    for position in range(expected):
        piece = parts[position].strip() if position < len(parts) else ""
        results.append(piece or None)
    return results


def block_wrapping(block: Block) -> Tuple[str, str]:
    """Return the prefix and suffix kept locally around a block's content."""

    if block.kind is BlockKind.CODE:
        lines = block.raw.split("\n")
        prefix = f"{lines[0]}\n"
        suffix = f"\n{lines[-1]}" if block.terminated else ""
        return prefix, suffix
    if block.kind is BlockKind.HEADING:
        return block.header_prefix, ""
    if block.kind is BlockKind.TEXT:
        return "", ""
    raise ValueError(f"Block kind {block.kind} has no wrapping.")


class LiveDocument:
    """The reconstructed document: one rendered segment per block."""

    def __init__(self, segments: Iterable[str]) -> None:
        self._segments = list(segments)

    def write(self, index: int, text: str) -> None:
        self._segments[index] = text

    def segment(self, index: int) -> str:
        return self._segments[index]

    @property
    def snapshot(self) -> str:
        return "\n".join(self._segments)


@dataclass
class PassResult:
    """Outcome of one translation pass."""

    pass_id: int
    document: str
    completed: int
    total: int
    cancelled: bool
    jobs: List[Job] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)

    @property
    def failed_blocks(self) -> int:
        return sum(job.size for job in self.jobs if job.state is JobState.FAILED)

    @property
    def translated_blocks(self) -> int:
        return sum(job.size for job in self.jobs if job.state is JobState.DONE)


class TranslationPass:
    """One attempt to bring every stale block of a document up to date.

    All writes to the live document, the cache and the progress callback
    are suppressed once the pass is cancelled.
    """

    def __init__(
        self,
        blocks: Sequence[Block],
        *,
        cache: TranslationCache,
        transformer: TextTransformer,
        settings: TransformSettings,
        on_progress: Optional[ProgressCallback] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pass_id = next(_pass_ids)
        self.blocks = list(blocks)
        self.cache = cache
        self.transformer = transformer
        self.settings = settings
        self.instruction = build_translation_instruction(settings.target_language)
        self._on_progress = on_progress
        self._on_snapshot = on_snapshot
        self._clock = clock

        self.stale = find_stale_blocks(self.blocks, cache)
        self.jobs = partition_jobs(
            self.stale,
            batch_size=settings.batch_size,
            size_threshold=settings.size_threshold,
        )
        self.document = LiveDocument(initial_segments(self.blocks, cache))
        self.total = len(self.stale)
        self.completed = 0
        self.cancelled = False
        self.errors: List[ErrorRecord] = []

    def cancel(self) -> None:
        if not self.cancelled:
            logger.debug("Translation pass %d cancelled.", self.pass_id)
        self.cancelled = True

    @property
    def progress(self) -> Progress:
        return Progress(current=self.completed, total=self.total)

    async def run(self) -> PassResult:
        self._publish()
        if self.jobs:
            semaphore = asyncio.Semaphore(self.settings.concurrency)

            async def guarded(job: Job) -> None:
                async with semaphore:
                    if self.cancelled:
                        return
                    await self._dispatch(job)

            tasks = [asyncio.ensure_future(guarded(job)) for job in self.jobs]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                self.cancel()
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        return PassResult(
            pass_id=self.pass_id,
            document=self.document.snapshot,
            completed=self.completed,
            total=self.total,
            cancelled=self.cancelled,
            jobs=list(self.jobs),
            errors=list(self.errors),
        )

    async def _dispatch(self, job: Job) -> None:
        job.state = JobState.RUNNING
        try:
            if job.kind is JobKind.BATCH:
                await self._run_batch(job)
            elif job.kind is JobKind.SINGLETON:
                await self._run_singleton(job)
            else:
                raise ValueError(f"Unknown job kind {job.kind}.")
        except ProviderError as exc:
            job.state = JobState.FAILED
            message = f"Job {job.job_id} ({job.kind.value}, {job.size} block(s)) failed: {exc}"
            logger.warning(message)
            self.errors.append(ErrorRecord(category=exc.category, message=message))
            for block, index in job.items:
                self._write(index, block.raw)
                self._advance()
            self._publish()
            return
        if job.state is JobState.RUNNING:
            job.state = JobState.DONE

    async def _run_batch(self, job: Job) -> None:
        payload = BATCH_DELIMITER.join(block.content for block, _ in job.items)
        translated = await self.transformer.transform(
            self.instruction,
            self.transformer.prepare_translation_input(payload),
        )
        pieces = split_batch_result(translated, job.size)
        for (block, index), piece in zip(job.items, pieces):
            if piece is None:
                final = block.raw
            else:
                final = f"{block.header_prefix}{piece}"
                self._remember(block, final)
            self._write(index, final)
            self._advance()
        self._publish()

    async def _run_singleton(self, job: Job) -> None:
        block, index = job.items[0]
        if not block.content.strip():
            self._remember(block, block.raw)
            self._advance()
            return

        prefix, suffix = block_wrapping(block)

        def publish_partial(assembled: str) -> None:
            if self._write(index, assembled):
                self._publish()

        aggregator = StreamAggregator(
            publish_partial,
            prefix=prefix,
            suffix=suffix,
            interval=self.settings.stream_interval,
            clock=self._clock,
            is_cancelled=lambda: self.cancelled,
        )
        translated = await self.transformer.transform(
            self.instruction,
            self.transformer.prepare_translation_input(block.content),
            aggregator.on_delta,
        )
        final = aggregator.finalize(translated)
        if final is None:
            return
        self._remember(block, final)
        self._advance()

    def _remember(self, block: Block, translated: str) -> None:
        if not self.cancelled:
            self.cache.put(block.raw, translated)

    def _write(self, index: int, text: str) -> bool:
        if self.cancelled:
            return False
        self.document.write(index, text)
        return True

    def _advance(self) -> None:
        self.completed += 1
        if not self.cancelled and self._on_progress is not None:
            self._on_progress(self.progress)

    def _publish(self) -> None:
        if not self.cancelled and self._on_snapshot is not None:
            self._on_snapshot(self.document.snapshot)
