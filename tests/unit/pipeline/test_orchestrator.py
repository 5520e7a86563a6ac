"""Unit tests for SearchPipeline sequencing, failure handling and timeouts."""

import asyncio

import pytest

from med_evidence.errors import (
    LiteratureFetchError,
    SummarizationError,
    TranslationError,
    ValidationError,
)
from med_evidence.models import (
    Article,
    LiteraturePage,
    PipelineStage,
    ResponseLanguage,
    SearchQuery,
    TranslatedQuery,
)
from med_evidence.pipeline import (
    BaseLiteratureClient,
    BaseSummarizer,
    BaseTranslator,
    SearchPipeline,
)

QUERY = "高齢者のインフルエンザワクチンの有効性は？"
TRANSLATED = "influenza vaccine elderly efficacy"
SUMMARY = "- 高用量ワクチンは入院を24%減少させた [1]"


class FakeTranslator(BaseTranslator):
    def __init__(self, result=TRANSLATED, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def translate(self, query):
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return TranslatedQuery(source=query, text=self.result)


class FakeLiterature(BaseLiteratureClient):
    def __init__(self, articles=None, total=None, error=None, delay=0.0):
        self.articles = articles or []
        self.total = len(self.articles) if total is None else total
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    async def search(self, query, page=1):
        self.calls.append((query, page))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return LiteraturePage(
            articles=self.articles, total_results=self.total, page=page, page_size=3
        )

    async def close(self):
        self.closed = True


class FakeSummarizer(BaseSummarizer):
    def __init__(self, result=SUMMARY, error=None):
        self.result = result
        self.error = error
        self.calls: list[tuple[list[Article], ResponseLanguage]] = []

    async def summarize(self, articles, language=ResponseLanguage.JA):
        self.calls.append((articles, language))
        if self.error:
            raise self.error
        return self.result


def make_pipeline(translator=None, literature=None, summarizer=None, **kwargs):
    translator = translator or FakeTranslator()
    literature = literature or FakeLiterature()
    summarizer = summarizer or FakeSummarizer()
    return (
        SearchPipeline(translator, literature, summarizer, **kwargs),
        translator,
        literature,
        summarizer,
    )


# ── Happy path ────────────────────────────────────────────────────────────────


async def test_complete_run(sample_articles):
    pipeline, translator, literature, summarizer = make_pipeline(
        literature=FakeLiterature(sample_articles, total=152)
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.COMPLETE
    assert outcome.ok
    assert outcome.error is None
    result = outcome.result
    assert result.query.text == QUERY
    assert result.translated_query == TRANSLATED
    assert result.articles == sample_articles
    assert result.total_results == 152
    assert result.summary == SUMMARY
    assert translator.calls == [QUERY]
    assert literature.calls == [(TRANSLATED, 1)]
    assert summarizer.calls == [(sample_articles, ResponseLanguage.JA)]
    assert outcome.stages == [
        PipelineStage.IDLE,
        PipelineStage.TRANSLATING,
        PipelineStage.SEARCHING,
        PipelineStage.SUMMARIZING,
        PipelineStage.COMPLETE,
    ]


async def test_run_passes_page_and_language(sample_articles):
    pipeline, _, literature, summarizer = make_pipeline(
        literature=FakeLiterature(sample_articles)
    )

    await pipeline.run(QUERY, language=ResponseLanguage.EN, page=2)

    assert literature.calls == [(TRANSLATED, 2)]
    assert summarizer.calls[0][1] == ResponseLanguage.EN


async def test_run_accepts_search_query(sample_articles):
    pipeline, translator, _, summarizer = make_pipeline(
        literature=FakeLiterature(sample_articles)
    )
    query = SearchQuery(text=QUERY, language=ResponseLanguage.EN)

    outcome = await pipeline.run(query)

    assert outcome.result.query is query
    assert summarizer.calls[0][1] == ResponseLanguage.EN


async def test_query_is_trimmed_before_translation(sample_articles):
    pipeline, translator, _, _ = make_pipeline(
        literature=FakeLiterature(sample_articles)
    )

    await pipeline.run(f"  {QUERY}\n")

    assert translator.calls == [QUERY]


# ── Validation ────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "query",
    ["", "   ", "あ" * 201],
    ids=["empty", "whitespace", "too_long"],
)
async def test_invalid_query_fails_without_calls(query):
    pipeline, translator, literature, summarizer = make_pipeline()

    outcome = await pipeline.run(query)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.error.kind == "validation_error"
    assert outcome.error.stage == PipelineStage.IDLE
    assert outcome.result is None
    assert translator.calls == []
    assert literature.calls == []
    assert summarizer.calls == []


async def test_query_at_max_length_is_accepted(sample_articles):
    pipeline, translator, _, _ = make_pipeline(
        literature=FakeLiterature(sample_articles)
    )

    outcome = await pipeline.run("あ" * 200)

    assert outcome.status == PipelineStage.COMPLETE
    assert len(translator.calls) == 1


def test_validate_reasons():
    pipeline, *_ = make_pipeline(max_query_length=10)

    with pytest.raises(ValidationError) as empty:
        pipeline.validate("  ")
    with pytest.raises(ValidationError) as long:
        pipeline.validate("x" * 11)

    assert empty.value.message_key == "query_required"
    assert long.value.message_key == "query_too_long"


# ── Stage failures ────────────────────────────────────────────────────────────


async def test_translation_failure_stops_pipeline():
    pipeline, _, literature, summarizer = make_pipeline(
        translator=FakeTranslator(error=TranslationError("llm down"))
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.error.kind == "translation_error"
    assert outcome.error.stage == PipelineStage.TRANSLATING
    assert literature.calls == []
    assert summarizer.calls == []
    assert outcome.stages[-2:] == [PipelineStage.TRANSLATING, PipelineStage.FAILED]


async def test_search_failure_skips_summarizer():
    pipeline, _, _, summarizer = make_pipeline(
        literature=FakeLiterature(error=LiteratureFetchError("HTTP 503"))
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.error.kind == "literature_fetch_error"
    assert outcome.error.stage == PipelineStage.SEARCHING
    assert summarizer.calls == []


async def test_unexpected_stage_exception_becomes_internal_error():
    pipeline, _, _, summarizer = make_pipeline(
        literature=FakeLiterature(error=RuntimeError("socket exploded"))
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.error.kind == "internal_error"
    assert outcome.error.stage == PipelineStage.SEARCHING
    assert summarizer.calls == []


async def test_unexpected_summarizer_exception_returns_partial(sample_articles):
    pipeline, *_ = make_pipeline(
        literature=FakeLiterature(sample_articles),
        summarizer=FakeSummarizer(error=KeyError("content")),
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.PARTIAL
    assert outcome.error.kind == "internal_error"
    assert outcome.result.articles == sample_articles


async def test_zero_results_skips_summarizer():
    pipeline, _, _, summarizer = make_pipeline(literature=FakeLiterature([], total=0))

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.NO_RESULTS
    assert outcome.ok
    assert outcome.result.articles == []
    assert outcome.result.total_results == 0
    assert outcome.result.summary is None
    assert outcome.result.translated_query == TRANSLATED
    assert summarizer.calls == []


async def test_summarization_failure_returns_partial(sample_articles):
    pipeline, *_ = make_pipeline(
        literature=FakeLiterature(sample_articles),
        summarizer=FakeSummarizer(error=SummarizationError("rate limited")),
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.PARTIAL
    assert not outcome.ok
    assert outcome.result.articles == sample_articles
    assert outcome.result.summary is None
    assert outcome.error.kind == "summarization_error"
    assert outcome.error.stage == PipelineStage.SUMMARIZING
    assert outcome.result.error == outcome.error


async def test_summarization_failure_without_partial(sample_articles):
    pipeline, *_ = make_pipeline(
        literature=FakeLiterature(sample_articles),
        summarizer=FakeSummarizer(error=SummarizationError("rate limited")),
        allow_partial=False,
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.result is None
    assert outcome.error.kind == "summarization_error"


# ── Timeouts ──────────────────────────────────────────────────────────────────


async def test_timeout_reports_current_stage():
    pipeline, _, literature, summarizer = make_pipeline(
        literature=FakeLiterature(delay=5.0)
    )

    outcome = await pipeline.run(QUERY, timeout=0.05)

    assert outcome.status == PipelineStage.FAILED
    assert outcome.error.kind == "timeout"
    assert outcome.error.stage == PipelineStage.SEARCHING
    assert summarizer.calls == []


async def test_default_timeout_applies():
    pipeline, *_ = make_pipeline(
        translator=FakeTranslator(delay=5.0), timeout=0.05
    )

    outcome = await pipeline.run(QUERY)

    assert outcome.error.kind == "timeout"
    assert outcome.error.stage == PipelineStage.TRANSLATING


# ── Concurrency / lifecycle ───────────────────────────────────────────────────


async def test_concurrent_runs_are_independent(sample_articles):
    pipeline, translator, _, _ = make_pipeline(
        literature=FakeLiterature(sample_articles)
    )

    outcomes = await asyncio.gather(
        pipeline.run("糖尿病"), pipeline.run(""), pipeline.run("高血圧")
    )

    assert [o.status for o in outcomes] == [
        PipelineStage.COMPLETE,
        PipelineStage.FAILED,
        PipelineStage.COMPLETE,
    ]
    assert sorted(translator.calls) == sorted(["糖尿病", "高血圧"])
    assert outcomes[0].result.query.text == "糖尿病"
    assert outcomes[2].result.query.text == "高血圧"


async def test_close_closes_literature_client():
    pipeline, _, literature, _ = make_pipeline()

    await pipeline.close()

    assert literature.closed
