"""
Search pipeline orchestrator.

Sequences translate → search → summarize for one query:

    idle → translating → searching → summarizing → complete

with terminal `no_results` (zero articles, summarizer skipped), `partial`
(articles but no summary) and `failed`. Retries live inside each stage's own
client; nothing is retried across stage boundaries.
"""

import asyncio
import logging

from med_evidence.constants import MAX_QUERY_LENGTH
from med_evidence.errors import (
    MedEvidenceError,
    SearchTimeoutError,
    ValidationError,
)
from med_evidence.models import (
    LiteraturePage,
    PipelineFailure,
    PipelineOutcome,
    PipelineStage,
    ResponseLanguage,
    SearchQuery,
    SearchResult,
    TranslatedQuery,
)
from med_evidence.pipeline.base import (
    BaseLiteratureClient,
    BaseSummarizer,
    BaseTranslator,
)

logger = logging.getLogger(__name__)


class _StageFailed(Exception):
    """Carries a stage error out of the stage sequence."""

    def __init__(self, error: MedEvidenceError, stage: PipelineStage):
        self.error = error
        self.stage = stage


class SearchPipeline:
    """Runs one search per `run()` call; safe to share across concurrent tasks.

    The pipeline holds no per-invocation state. The only shared mutable state
    is whatever the injected literature client owns (rate limiter, cache).
    """

    def __init__(
        self,
        translator: BaseTranslator,
        literature: BaseLiteratureClient,
        summarizer: BaseSummarizer,
        *,
        max_query_length: int = MAX_QUERY_LENGTH,
        allow_partial: bool = True,
        timeout: float | None = None,
    ):
        self.translator = translator
        self.literature = literature
        self.summarizer = summarizer
        self.max_query_length = max_query_length
        self.allow_partial = allow_partial
        self.timeout = timeout

    async def close(self) -> None:
        await self.literature.close()

    def validate(
        self,
        query: SearchQuery | str,
        language: ResponseLanguage = ResponseLanguage.JA,
    ) -> SearchQuery:
        """Return a trimmed SearchQuery or raise ValidationError."""
        if isinstance(query, SearchQuery):
            text, language = query.text, query.language
        else:
            text = query
        text = (text or "").strip()
        if not text:
            raise ValidationError(
                "query must not be empty", field="query", reason="required"
            )
        if len(text) > self.max_query_length:
            raise ValidationError(
                f"query exceeds {self.max_query_length} characters",
                field="query",
                reason="too_long",
            )
        if isinstance(query, SearchQuery) and query.text == text:
            return query
        return SearchQuery(text=text, language=language)

    async def run(
        self,
        query: SearchQuery | str,
        *,
        language: ResponseLanguage = ResponseLanguage.JA,
        page: int = 1,
        timeout: float | None = None,
    ) -> PipelineOutcome:
        """Execute the pipeline and return a structured outcome. Never raises
        for pipeline errors; they are reported in `outcome.error`.

        `timeout` (or the pipeline default) bounds the whole invocation; on
        expiry the in-flight stage is cancelled.
        """
        stages = [PipelineStage.IDLE]
        try:
            search_query = self.validate(query, language)
        except ValidationError as e:
            logger.info("Rejected query: %s", e)
            return self._failed(e, PipelineStage.IDLE, stages)

        timeout = timeout if timeout is not None else self.timeout
        try:
            if timeout:
                return await asyncio.wait_for(
                    self._execute(search_query, page, stages), timeout
                )
            return await self._execute(search_query, page, stages)
        except _StageFailed as e:
            return self._failed(e.error, e.stage, stages)
        except asyncio.TimeoutError:
            stage = stages[-1]
            logger.error("Pipeline timed out after %.1fs during %s", timeout, stage)
            return self._failed(
                SearchTimeoutError(f"Search timed out after {timeout}s"),
                stage,
                stages,
            )

    async def _execute(
        self, query: SearchQuery, page: int, stages: list[PipelineStage]
    ) -> PipelineOutcome:
        stages.append(PipelineStage.TRANSLATING)
        translated: TranslatedQuery = await self._stage(
            PipelineStage.TRANSLATING, self.translator.translate(query.text)
        )
        logger.info("Stage translating done: %r → %r", query.text, translated.text)

        stages.append(PipelineStage.SEARCHING)
        literature: LiteraturePage = await self._stage(
            PipelineStage.SEARCHING, self.literature.search(translated.text, page)
        )
        logger.info(
            "Stage searching done: %d articles (%d total)",
            len(literature.articles),
            literature.total_results,
        )

        if not literature.articles:
            stages.append(PipelineStage.NO_RESULTS)
            return PipelineOutcome(
                status=PipelineStage.NO_RESULTS,
                result=SearchResult(
                    query=query,
                    translated_query=translated.text,
                    total_results=literature.total_results,
                ),
                stages=stages,
            )

        stages.append(PipelineStage.SUMMARIZING)
        try:
            summary = await self._stage(
                PipelineStage.SUMMARIZING,
                self.summarizer.summarize(literature.articles, query.language),
            )
        except _StageFailed as e:
            if not self.allow_partial:
                raise
            failure = self._failure(e.error, e.stage)
            stages.append(PipelineStage.PARTIAL)
            logger.warning("Returning articles without summary: %s", e.error)
            return PipelineOutcome(
                status=PipelineStage.PARTIAL,
                result=SearchResult(
                    query=query,
                    translated_query=translated.text,
                    articles=literature.articles,
                    total_results=literature.total_results,
                    error=failure,
                ),
                error=failure,
                stages=stages,
            )
        logger.info("Stage summarizing done (%d chars)", len(summary))

        stages.append(PipelineStage.COMPLETE)
        return PipelineOutcome(
            status=PipelineStage.COMPLETE,
            result=SearchResult(
                query=query,
                translated_query=translated.text,
                articles=literature.articles,
                total_results=literature.total_results,
                summary=summary,
            ),
            stages=stages,
        )

    @staticmethod
    async def _stage(stage: PipelineStage, awaitable):
        try:
            return await awaitable
        except MedEvidenceError as e:
            logger.error("Stage %s failed (%s): %s", stage.value, e.kind, e)
            raise _StageFailed(e, stage) from e
        except Exception as e:
            # CancelledError is a BaseException and still propagates
            logger.exception("Stage %s failed unexpectedly", stage.value)
            error = MedEvidenceError(f"Unexpected error: {e}")
            raise _StageFailed(error, stage) from e

    @staticmethod
    def _failure(error: MedEvidenceError, stage: PipelineStage) -> PipelineFailure:
        return PipelineFailure(kind=error.kind, stage=stage, message=error.message)

    def _failed(
        self,
        error: MedEvidenceError,
        stage: PipelineStage,
        stages: list[PipelineStage],
    ) -> PipelineOutcome:
        error.stage = stage.value
        stages.append(PipelineStage.FAILED)
        return PipelineOutcome(
            status=PipelineStage.FAILED,
            error=self._failure(error, stage),
            stages=stages,
        )
