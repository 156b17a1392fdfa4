"""Command line interface for the JadeMark translator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import re
import sys
from typing import Iterable, Optional

from .assistant import AssistantAction, run_assistant
from .configuration import JadeMarkConfig, get_settings, settings_to_transform
from .errors import (
    JadeMarkError,
    OverwriteRefusedError,
    ProviderConfigurationError,
    ProviderError,
    UnsupportedFileTypeError,
)
from .providers import build_transformer
from .structures import TransformSettings
from .translator import SUPPORTED_SUFFIXES, TranslationRunner, TranslationSummary, validate_paths

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jademark",
        description=(
            "Translate Markdown documents block by block while preserving structure."
        ),
    )
    parser.add_argument(
        "input_file",
        help="Path to the .md, .markdown or .txt file to translate.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Provider identifier: google-free, google-sdk, custom, openai or echo.",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model identifier.",
    )
    parser.add_argument(
        "--base-url",
        help="OpenAI-compatible endpoint for the custom provider.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language name (default from configuration).",
    )
    parser.add_argument(
        "--language-code",
        help="Destination language code used by the free Google endpoint.",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        help="Maximum number of translation jobs in flight.",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        help="Maximum number of small blocks per batched request.",
    )
    parser.add_argument(
        "--html",
        help="Also write an HTML preview of the translated document to this path.",
    )
    parser.add_argument(
        "--assist",
        choices=[action.value for action in AssistantAction],
        help="Run a writing-assistant action on the input and print the response.",
    )
    parser.add_argument(
        "--prompt",
        help="Instruction for the custom assistant action.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}.md")


def configure_logging(config: Optional[JadeMarkConfig], verbose: bool, provider_debug: bool) -> None:
    level_name = "INFO" if verbose else (config.LOG_LEVEL if config else "WARNING")
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if provider_debug:
        logging.getLogger("jademark.providers").setLevel(logging.DEBUG)


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    html_file: str | None,
    settings: TransformSettings,
    force_overwrite: bool,
    verbose: bool,
    provider_debug: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, settings.target_language)
    )
    html_path = pathlib.Path(html_file).expanduser().resolve() if html_file else None

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
        if html_path is not None:
            validate_paths(input_path, html_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except (UnsupportedFileTypeError, OverwriteRefusedError) as exc:
        return 1, None, str(exc)
    except JadeMarkError as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if html_path is not None:
        html_path.parent.mkdir(parents=True, exist_ok=True)

    runner = TranslationRunner(
        input_path=input_path,
        output_path=output_path,
        settings=settings,
        html_path=html_path,
        verbose=verbose,
        provider_debug=provider_debug,
    )

    try:
        summary = runner.run()
    except ProviderConfigurationError as exc:
        return 1, None, str(exc)
    except JadeMarkError as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"Could not read or write files: {exc}"
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    return 0, summary, None


def execute_assistant(
    *,
    input_file: str,
    action: str,
    prompt: str | None,
    settings: TransformSettings,
    provider_debug: bool,
) -> tuple[int, str | None]:
    """Run a writing-assistant action, streaming the response to stdout."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    if not input_path.is_file():
        return 1, "Input file not found. Please provide a readable Markdown or text file."
    if input_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        return 1, f"Unsupported file type '{input_path.suffix}'."

    streamed = []

    def echo(chunk: str) -> None:
        streamed.append(chunk)
        sys.stdout.write(chunk)
        sys.stdout.flush()

    try:
        transformer = build_transformer(settings, debug=provider_debug)
        content = input_path.read_text(encoding="utf-8")
        response = asyncio.run(
            run_assistant(transformer, action, content, prompt=prompt, on_delta=echo)
        )
    except (ProviderConfigurationError, ValueError) as exc:
        return 1, str(exc)
    except ProviderError as exc:
        return 1, f"Assistant request failed: {exc}"
    except KeyboardInterrupt:
        return 2, "Assistant interrupted by user."
    if not streamed:
        sys.stdout.write(response)
    if not response.endswith("\n"):
        sys.stdout.write("\n")
    return 0, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    if summary.html_path:
        print(f"  HTML preview:    {summary.html_path}")
    print(
        "  Blocks:          "
        f"{summary.translated_blocks} translated / {summary.stale_blocks} stale "
        f"({summary.failed_blocks} failed, {summary.cached_blocks} cached)"
    )
    print(f"  Jobs:            {summary.total_jobs}")
    print(
        f"  Provider:        {summary.provider_name}"
        + (f" ({summary.model})" if summary.model else "")
    )
    print(f"  Target language: {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.total_errors:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        config = get_settings()
        settings = settings_to_transform(
            config,
            provider=args.provider,
            model=args.model,
            base_url=args.base_url,
            target_language=args.target_language,
            target_language_code=args.language_code,
            concurrency=args.concurrency,
            batch_size=args.batch_size,
        )
    except ProviderConfigurationError as exc:
        print(exc)
        return 1

    provider_debug = bool(args.debug_provider or config.PROVIDER_DEBUG)
    configure_logging(config, args.verbose, provider_debug)

    if args.assist:
        exit_code, message = execute_assistant(
            input_file=args.input_file,
            action=args.assist,
            prompt=args.prompt,
            settings=settings,
            provider_debug=provider_debug,
        )
        if message:
            print(message)
        return exit_code

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        html_file=args.html,
        settings=settings,
        force_overwrite=args.force,
        verbose=args.verbose,
        provider_debug=provider_debug,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
