"""Command line interface for the BabelBlocks translator."""

from __future__ import annotations

import argparse
import json
import pathlib
import re
import sys
from dataclasses import replace
from typing import Iterable, Optional

from .configuration import (
    build_client_from_settings,
    get_settings,
    parse_meta_fields,
    to_pipeline_config,
)
from .errors import BabelBlocksError, ConfigurationError
from .providers import EchoTranslationClient, TranslationClient, check_connection
from .structures import (
    PipelineConfig,
    SourceDocument,
    TranslationResult,
    TranslationStrategy,
)
from .translator import DocumentTranslator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="babelblocks",
        description=(
            "Translate block-structured documents while keeping markup, code and embeds intact."
        ),
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="A .json document (title, content, excerpt, meta) or a markup file.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language code (e.g. es, fr, pt-br).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Optional source language code.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider: openai, claude, gemini or echo.",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model identifier.",
    )
    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in TranslationStrategy],
        help="Translate one segment per request or one chunk per request.",
    )
    parser.add_argument(
        "--chunk-threshold",
        type=int,
        help="Content size in characters above which documents are chunked.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of concurrent provider requests (default: 1).",
    )
    parser.add_argument(
        "--meta-fields",
        help="Comma separated meta keys to translate (overrides META_FIELDS).",
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
        help="Print the translation trace while working.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--check-connection",
        action="store_true",
        help="Send a short test translation to the provider and exit.",
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
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def load_document(path: pathlib.Path) -> SourceDocument:
    """Read a JSON document or treat any other file as bare content."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() != ".json":
        return SourceDocument(title="", content=text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BabelBlocksError(f"Input JSON could not be read: {exc}") from exc
    if not isinstance(data, dict):
        raise BabelBlocksError("Input JSON must be an object with title and content.")
    meta = data.get("meta") or {}
    return SourceDocument(
        title=str(data.get("title") or ""),
        content=str(data.get("content") or ""),
        excerpt=str(data.get("excerpt") or ""),
        meta=meta if isinstance(meta, dict) else {},
    )


def write_result(
    path: pathlib.Path,
    result: TranslationResult,
    *,
    as_json: bool,
    target_language: str,
) -> None:
    if not as_json:
        path.write_text(result.content, encoding="utf-8")
        return
    payload = {
        "language": target_language,
        "title": result.title,
        "content": result.content,
        "excerpt": result.excerpt or "",
        "meta": result.meta,
    }
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def resolve_runtime(
    args: argparse.Namespace,
) -> tuple[TranslationClient, PipelineConfig]:
    """Build the client and pipeline settings from configuration and flags."""

    provider = (args.provider or "").strip().lower()
    if provider in {"echo", "mock", "noop"}:
        client: TranslationClient = EchoTranslationClient(debug=args.debug_provider)
        config = PipelineConfig()
    else:
        settings = get_settings()
        client = build_client_from_settings(
            settings,
            provider=args.provider,
            model=args.model,
            debug=args.debug_provider,
        )
        config = to_pipeline_config(settings)

    overrides = {}
    if args.strategy:
        overrides["strategy"] = TranslationStrategy(args.strategy)
    if args.chunk_threshold:
        overrides["chunk_threshold"] = args.chunk_threshold
    if args.workers:
        overrides["max_workers"] = max(1, args.workers)
    if args.meta_fields is not None:
        overrides["meta_fields"] = parse_meta_fields(args.meta_fields)
    return client, replace(config, **overrides)


def execute_translation(
    args: argparse.Namespace,
) -> tuple[int, TranslationResult | None, str | None]:
    """Execute a translation run and return the exit code, result, and message."""

    input_path = pathlib.Path(args.input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(args.output).expanduser().resolve()
        if args.output
        else derive_output_path(input_path, args.target_language)
    )

    if not input_path.is_file():
        return 1, None, "Input file not found. Please provide a readable document."
    if input_path == output_path:
        return 1, None, "The output path matches the input document. Refusing to overwrite it."
    if output_path.exists() and not args.force:
        return 1, None, "The output file already exists. Rename it or use --force."

    try:
        document = load_document(input_path)
        client, config = resolve_runtime(args)
    except BabelBlocksError as exc:
        return 1, None, str(exc)

    translator = DocumentTranslator(client, config, verbose=args.verbose)
    try:
        result = translator.translate_document(
            document, args.target_language, args.source_language
        )
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    if not result.success:
        return 1, result, result.error

    output_path.parent.mkdir(parents=True, exist_ok=True)
    write_result(
        output_path,
        result,
        as_json=input_path.suffix.lower() == ".json",
        target_language=args.target_language,
    )
    print(f"Output written to {output_path}")
    return 0, result, result.error


def print_summary(result: TranslationResult) -> None:
    """Output a short report once processing completes."""

    print("\nTranslation complete." if result.success else "\nTranslation aborted.")
    print(f"  State:           {result.state.value}")
    print(
        "  Content units:   "
        f"{result.units_succeeded} translated / {result.units_attempted} attempted "
        f"({result.units_failed} failed)"
    )
    if result.excerpt is not None:
        print("  Excerpt:         translated")
    if result.meta:
        print(f"  Meta fields:     {', '.join(sorted(result.meta))}")
    if result.errors:
        print("  Notes:")
        for record in result.errors:
            print(f"    - {record.message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.check_connection:
        try:
            client, _ = resolve_runtime(args)
        except ConfigurationError as exc:
            print(exc)
            return 1
        ok, message = check_connection(client)
        print(message)
        return 0 if ok else 1

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")
    if not args.target_language:
        parser.error("the following arguments are required: -t/--target-language")

    exit_code, result, message = execute_translation(args)
    if message:
        print(message)
    if result:
        print_summary(result)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
