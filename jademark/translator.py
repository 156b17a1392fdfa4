"""High-level orchestration for document translation."""

from __future__ import annotations

import asyncio
import html
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO

from .annotations import AnnotationStore, write_csv
from .cache import TranslationCache
from .errors import JadeMarkError, OverwriteRefusedError, UnsupportedFileTypeError
from .providers import TextTransformer, build_transformer
from .rendering import locate_selection, render_markdown, to_html
from .scheduler import PassResult, TranslationPass
from .segmenter import segment_document
from .structures import (
    Annotation,
    Progress,
    ProgressCallback,
    RenderNode,
    SnapshotCallback,
    TransformSettings,
)

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".md", ".markdown", ".txt")

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""

TransformerFactory = Callable[..., TextTransformer]


class DocumentSession:
    """Owns the cache, annotations, settings and the current translation pass.

    At most one pass is live at a time: starting a new one, changing the
    settings or disabling translation cancels the pass in flight.
    """

    def __init__(
        self,
        settings: Optional[TransformSettings] = None,
        *,
        transformer: Optional[TextTransformer] = None,
        transformer_factory: TransformerFactory = build_transformer,
        provider_debug: bool = False,
        on_snapshot: Optional[SnapshotCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.settings = settings or TransformSettings()
        self.cache = TranslationCache()
        self.annotations = AnnotationStore()
        self.translation_enabled = True
        self.source = ""
        self.progress = Progress(current=0, total=0)
        self._displayed = ""
        self._pass: Optional[TranslationPass] = None
        self._transformer = transformer
        self._owns_transformer = transformer is None
        self._transformer_factory = transformer_factory
        self._provider_debug = provider_debug
        self._on_snapshot = on_snapshot
        self._on_progress = on_progress

    @property
    def transformer(self) -> TextTransformer:
        if self._transformer is None:
            self._transformer = self._transformer_factory(
                self.settings, debug=self._provider_debug
            )
        return self._transformer

    @property
    def current_pass(self) -> Optional[TranslationPass]:
        return self._pass

    @property
    def displayed_content(self) -> str:
        return self._displayed

    def cancel(self) -> None:
        if self._pass is not None:
            self._pass.cancel()

    def update_settings(self, settings: TransformSettings) -> bool:
        """Adopt new settings; returns False when nothing changed."""

        if settings == self.settings:
            return False
        self.cancel()
        self.cache.clear()
        if self._owns_transformer:
            self._transformer = None
        self.settings = settings
        logger.debug("Settings changed; cache cleared.")
        return True

    def set_translation_enabled(self, enabled: bool) -> None:
        self.translation_enabled = enabled
        if not enabled:
            self.cancel()
            self._publish(self.source)

    def start_pass(self, document: str) -> TranslationPass:
        """Cancel the running pass and prepare a new one over ``document``.

        The initial snapshot, cached translations merged with raw text for
        everything else, is published before any job is dispatched.
        """

        self.cancel()
        self.source = document
        translation_pass = TranslationPass(
            segment_document(document),
            cache=self.cache,
            transformer=self.transformer,
            settings=self.settings,
            on_progress=self._handle_progress,
            on_snapshot=self._publish,
        )
        self._pass = translation_pass
        self.progress = translation_pass.progress
        self._publish(translation_pass.document.snapshot)
        return translation_pass

    async def translate(self, document: str) -> PassResult:
        if not self.translation_enabled:
            self.source = document
            self._publish(document)
            return PassResult(
                pass_id=0, document=document, completed=0, total=0, cancelled=False
            )
        return await self.start_pass(document).run()

    def render(self, with_annotations: bool = True) -> RenderNode:
        annotations = list(self.annotations) if with_annotations else []
        return render_markdown(self.displayed_content, annotations)

    def annotate(self, phrase: str, note: str, occurrence: int = 0) -> Optional[Annotation]:
        """Attach a remark to the n-th rendered occurrence of ``phrase``."""

        selection = locate_selection(self.render(with_annotations=False), phrase, occurrence)
        if selection is None:
            return None
        return self.annotations.add(
            selection.text,
            note,
            selection.context_hash,
            selection.start_offset,
            selection.end_offset,
        )

    def export_annotations(self, stream: TextIO) -> int:
        return write_csv(self.annotations, stream)

    def _publish(self, snapshot: str) -> None:
        self._displayed = snapshot
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    def _handle_progress(self, progress: Progress) -> None:
        self.progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)


@dataclass
class TranslationSummary:
    """Report returned after processing a document."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    html_path: Optional[pathlib.Path]
    total_blocks: int
    cached_blocks: int
    stale_blocks: int
    translated_blocks: int
    failed_blocks: int
    total_jobs: int
    provider_name: str
    model: Optional[str]
    target_language: str
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return len(self.error_messages)


class TranslationRunner:
    """Runs one translation pass over a Markdown file and writes the result."""

    def __init__(
        self,
        *,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        settings: TransformSettings,
        html_path: Optional[pathlib.Path] = None,
        verbose: bool = False,
        provider_debug: bool = False,
        transformer: Optional[TextTransformer] = None,
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path
        self.settings = settings
        self.html_path = html_path
        self.verbose = verbose
        self.provider_debug = provider_debug
        self.transformer = transformer

    def _report_progress(self, progress: Progress) -> None:
        if self.verbose:
            print(
                f"Translated {progress.current} of {progress.total} block(s) "
                f"({progress.fraction:.0%})."
            )

    def run(self) -> TranslationSummary:
        start_time = time.time()

        document = self.input_path.read_text(encoding="utf-8")
        session = DocumentSession(
            self.settings,
            transformer=self.transformer,
            provider_debug=self.provider_debug,
            on_progress=self._report_progress,
        )
        translation_pass = session.start_pass(document)
        translatable = sum(1 for block in translation_pass.blocks if block.translatable)
        if self.verbose:
            print(
                f"Prepared {len(translation_pass.blocks)} blocks, "
                f"{translation_pass.total} to translate in {len(translation_pass.jobs)} jobs."
            )

        result = asyncio.run(translation_pass.run())

        self.output_path.write_text(result.document, encoding="utf-8")
        if self.html_path is not None:
            body = to_html(session.render())
            self.html_path.write_text(
                HTML_TEMPLATE.format(title=html.escape(self.input_path.name), body=body),
                encoding="utf-8",
            )

        return TranslationSummary(
            input_path=self.input_path,
            output_path=self.output_path,
            html_path=self.html_path,
            total_blocks=translatable,
            cached_blocks=translatable - result.total,
            stale_blocks=result.total,
            translated_blocks=result.translated_blocks,
            failed_blocks=result.failed_blocks,
            total_jobs=len(result.jobs),
            provider_name=session.transformer.name,
            model=self.settings.model or None,
            target_language=self.settings.target_language,
            elapsed_seconds=time.time() - start_time,
            error_messages=[record.message for record in result.errors],
        )


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable Markdown or text file."
        )
    if not input_path.is_file():
        raise JadeMarkError("Input path must be a file.")
    if input_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFileTypeError(
            f"Unsupported file type '{input_path.suffix}'. "
            f"Expected one of: {', '.join(SUPPORTED_SUFFIXES)}."
        )

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
