"""High-level orchestration for document translation."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .classifier import BlockClassifier
from .documents import parse_blocks, serialize_document
from .errors import (
    AbortRequested,
    BabelBlocksError,
    ConfigurationError,
    ErrorCategory,
    ErrorRecord,
    ProviderError,
    StructuralParseError,
)
from .extractor import SegmentExtractor
from .merger import SegmentMerger
from .providers import TranslationClient, pack_segments, unpack_segments
from .segmenter import chunk, split_content_units
from .structures import (
    DocumentNode,
    DocumentState,
    NodeKind,
    PipelineConfig,
    SourceDocument,
    TranslationOutcome,
    TranslationResult,
    TranslationStrategy,
    TranslationUnit,
)

ClientFactory = Callable[[], TranslationClient]


def preview(text: str, limit: int) -> str:
    """Collapse whitespace and truncate text for trace output."""

    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: max(0, limit - 3)] + "..."


class DocumentTranslator:
    """Coordinates title, content, excerpt and meta translation for a document."""

    def __init__(
        self,
        client: Optional[TranslationClient] = None,
        config: Optional[PipelineConfig] = None,
        *,
        client_factory: Optional[ClientFactory] = None,
        verbose: bool = False,
    ) -> None:
        if client is None and client_factory is None:
            raise ValueError("Provide a translation client or a client factory.")
        self.client = client
        self.client_factory = client_factory
        self.config = config or PipelineConfig()
        self.verbose = verbose

        classifier = BlockClassifier(self.config.opaque_blocks)
        self.extractor = SegmentExtractor(self.config, classifier=classifier)
        self.merger = SegmentMerger(self.config, classifier=classifier)

    # --- Public API -------------------------------------------------------

    def translate_document(
        self,
        document: SourceDocument,
        target_language: str,
        source_language: Optional[str] = None,
    ) -> TranslationResult:
        result = TranslationResult()
        self._trace(result, f"Translating document into '{target_language}'.")

        try:
            client = self._resolve_client()
        except ConfigurationError as exc:
            return self._abort(result, ErrorCategory.CONFIGURATION, str(exc))

        self._enter(result, DocumentState.TITLE_TRANSLATING)
        title = self._safe_translate(client, document.title, target_language, source_language)
        if not title.ok:
            return self._abort(
                result,
                ErrorCategory.TRANSLATION,
                f"Title translation failed: {title.error}",
            )
        result.title = title.translated_text or ""
        self._trace(
            result,
            f"[ok] title: '{preview(document.title, self.config.trace_preview)}' -> "
            f"'{preview(result.title, self.config.trace_preview)}'",
        )

        self._enter(result, DocumentState.CONTENT_TRANSLATING)
        try:
            result.content = self._translate_content(
                client, document.content, target_language, source_language, result
            )
        except BabelBlocksError as exc:
            return self._abort(result, ErrorCategory.OTHER, f"Content translation failed: {exc}")

        self._enter(result, DocumentState.EXCERPT_TRANSLATING)
        if document.excerpt and document.excerpt.strip():
            excerpt = self._safe_translate(
                client, document.excerpt, target_language, source_language
            )
            if excerpt.ok:
                result.excerpt = excerpt.translated_text
                self._trace(result, "[ok] excerpt translated.")
            else:
                self._record(
                    result,
                    ErrorCategory.TRANSLATION,
                    f"[failed] excerpt omitted: {excerpt.error}",
                )

        self._translate_meta(client, document, target_language, source_language, result)

        if result.units_failed:
            result.error = (
                f"{result.units_failed} of {result.units_attempted} content units "
                "failed; their original text was kept."
            )
        self._enter(result, DocumentState.COMPLETED)
        self._trace(
            result,
            f"Completed: {result.units_succeeded} units translated, "
            f"{result.units_failed} failed.",
        )
        return result

    def translate_batch(
        self,
        documents: Union[Mapping[str, SourceDocument], Iterable[Tuple[str, SourceDocument]]],
        target_language: str,
        source_language: Optional[str] = None,
        *,
        on_result: Optional[Callable[[str, TranslationResult], None]] = None,
    ) -> "BatchReport":
        """Translate documents one after another.

        Interrupting the batch keeps every result finished so far.
        """

        items = documents.items() if isinstance(documents, Mapping) else documents
        report = BatchReport()
        try:
            for key, document in items:
                result = self.translate_document(document, target_language, source_language)
                report.add(key, result)
                if on_result is not None:
                    on_result(key, result)
        except (KeyboardInterrupt, AbortRequested):
            report.interrupted = True
        return report

    # --- Content ----------------------------------------------------------

    def _translate_content(
        self,
        client: TranslationClient,
        content: str,
        target_language: str,
        source_language: Optional[str],
        result: TranslationResult,
    ) -> str:
        if not content:
            return ""

        threshold = self.config.chunk_threshold
        if len(content) <= threshold:
            return self._translate_tree(
                client, content, target_language, source_language, result
            )

        chunks = chunk(split_content_units(content), threshold)
        self._trace(
            result,
            f"Content has {len(content)} characters; processing {len(chunks)} "
            f"chunks of at most {threshold}.",
        )
        pieces: List[str] = []
        for content_chunk in chunks:
            self._trace(
                result,
                f"Chunk {content_chunk.chunk_id}: {len(content_chunk.units)} units, "
                f"{content_chunk.size} characters.",
            )
            pieces.append(
                self._translate_tree(
                    client,
                    "".join(content_chunk.units),
                    target_language,
                    source_language,
                    result,
                )
            )
        return "".join(pieces)

    def _translate_tree(
        self,
        client: TranslationClient,
        text: str,
        target_language: str,
        source_language: Optional[str],
        result: TranslationResult,
    ) -> str:
        try:
            nodes = parse_blocks(text)
        except StructuralParseError as exc:
            self._record(
                result,
                ErrorCategory.FORMAT,
                f"Block structure unreadable ({exc}); treating content as one fragment.",
            )
            nodes = [DocumentNode(kind=NodeKind.FRAGMENT, inner_content=[text])]

        segments = self.extractor.extract(nodes)
        units = [TranslationUnit(segment=segment) for segment in segments]
        self._trace(result, f"Extracted {len(units)} segments.")
        self._run_units(client, units, target_language, source_language, result)

        outcome = self.merger.merge(nodes, units)
        if outcome.error is not None:
            self._record(result, ErrorCategory.REINSERTION, f"Merge skipped: {outcome.error}")
            return text
        return serialize_document(outcome.nodes)

    def _run_units(
        self,
        client: TranslationClient,
        units: Sequence[TranslationUnit],
        target_language: str,
        source_language: Optional[str],
        result: TranslationResult,
    ) -> None:
        if self.config.strategy is TranslationStrategy.CHUNK:
            jobs = [
                content_chunk.units
                for content_chunk in chunk(
                    list(units),
                    self.config.chunk_threshold,
                    size=lambda unit: len(unit.segment.text),
                )
            ]
        else:
            jobs = [[unit] for unit in units]

        def call(job: Sequence[TranslationUnit]) -> List[TranslationOutcome]:
            return self._call_job(client, job, target_language, source_language)

        if self.config.max_workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                outcomes = list(pool.map(call, jobs))
        else:
            outcomes = [call(job) for job in jobs]

        # Outcomes are applied in extraction order, whatever order calls finished in.
        for job, job_outcomes in zip(jobs, outcomes):
            for unit, outcome in zip(job, job_outcomes):
                self._apply(unit, outcome, result)

    def _call_job(
        self,
        client: TranslationClient,
        job: Sequence[TranslationUnit],
        target_language: str,
        source_language: Optional[str],
    ) -> List[TranslationOutcome]:
        if len(job) == 1:
            return [
                self._safe_translate(
                    client, job[0].segment.text, target_language, source_language
                )
            ]

        packed = pack_segments([unit.segment.text for unit in job])
        outcome = self._safe_translate(client, packed, target_language, source_language)
        if not outcome.ok:
            return [TranslationOutcome(error=outcome.error) for _ in job]
        try:
            texts = unpack_segments(outcome.translated_text or "", len(job))
        except ProviderError as exc:
            return [TranslationOutcome(error=str(exc)) for _ in job]
        return [TranslationOutcome(translated_text=text) for text in texts]

    def _apply(
        self,
        unit: TranslationUnit,
        outcome: TranslationOutcome,
        result: TranslationResult,
    ) -> None:
        result.units_attempted += 1
        limit = self.config.trace_preview
        before = preview(unit.segment.text, limit)
        translated = outcome.translated_text if outcome.ok else None
        if translated and translated.strip():
            unit.succeed(translated)
            self._trace(
                result,
                f"[ok] {unit.segment.locator}: '{before}' -> '{preview(translated, limit)}'",
            )
            return

        unit.fail(outcome.error or "Empty translation returned.")
        result.units_failed += 1
        self._record(
            result,
            ErrorCategory.TRANSLATION,
            f"[failed] {unit.segment.locator}: '{before}' kept ({unit.error})",
        )

    # --- Meta fields ------------------------------------------------------

    def _translate_meta(
        self,
        client: TranslationClient,
        document: SourceDocument,
        target_language: str,
        source_language: Optional[str],
        result: TranslationResult,
    ) -> None:
        for key in self.config.meta_fields:
            value = document.meta.get(key)
            if not isinstance(value, str) or not value.strip():
                continue
            outcome = self._safe_translate(client, value, target_language, source_language)
            if outcome.ok:
                result.meta[key] = outcome.translated_text or ""
                self._trace(result, f"[ok] meta '{key}' translated.")
            else:
                self._record(
                    result,
                    ErrorCategory.TRANSLATION,
                    f"[failed] meta '{key}' omitted: {outcome.error}",
                )

    # --- Helpers ----------------------------------------------------------

    def _resolve_client(self) -> TranslationClient:
        if self.client is None and self.client_factory is not None:
            try:
                self.client = self.client_factory()
            except ConfigurationError:
                raise
            except Exception as exc:
                raise ConfigurationError(
                    f"Translation client could not be created: {type(exc).__name__}: {exc}"
                ) from exc
        if self.client is None:
            raise ConfigurationError("No translation client is configured.")
        return self.client

    @staticmethod
    def _safe_translate(
        client: TranslationClient,
        text: str,
        target_language: str,
        source_language: Optional[str],
    ) -> TranslationOutcome:
        try:
            return client.translate(text, target_language, source_language)
        except Exception as exc:
            # Clients are expected to return errors; a raising one fails only this call.
            return TranslationOutcome(error=f"{type(exc).__name__}: {exc}")

    def _enter(self, result: TranslationResult, state: DocumentState) -> None:
        result.state = state
        self._trace(result, f"State: {state.value}")

    def _trace(self, result: TranslationResult, line: str) -> None:
        result.debug_trace.append(line)
        if self.verbose:
            print(line)

    def _record(self, result: TranslationResult, category: ErrorCategory, message: str) -> None:
        result.errors.append(ErrorRecord(category=category, message=message))
        self._trace(result, message)

    def _abort(
        self,
        result: TranslationResult,
        category: ErrorCategory,
        message: str,
    ) -> TranslationResult:
        result.error = message
        self._record(result, category, message)
        self._enter(result, DocumentState.ABORTED)
        return result


@dataclass
class BatchReport:
    """Aggregate outcome of translating several documents."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    interrupted: bool = False
    results: List[Tuple[str, TranslationResult]] = field(default_factory=list)

    def add(self, key: str, result: TranslationResult) -> None:
        self.processed += 1
        if result.success:
            self.successful += 1
        else:
            self.failed += 1
        self.results.append((key, result))


def translate_document(
    document: SourceDocument,
    target_language: str,
    client: TranslationClient,
    config: Optional[PipelineConfig] = None,
    source_language: Optional[str] = None,
) -> TranslationResult:
    """Translate one document with an explicit client and configuration."""

    return DocumentTranslator(client, config).translate_document(
        document, target_language, source_language
    )
