"""Search pipeline data models."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from med_evidence.models.model_pubmed import Article


class ResponseLanguage(str, Enum):
    JA = "ja"
    EN = "en"


class PipelineStage(str, Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    SEARCHING = "searching"
    SUMMARIZING = "summarizing"
    # terminal
    COMPLETE = "complete"
    NO_RESULTS = "no_results"
    PARTIAL = "partial"
    FAILED = "failed"


class SearchQuery(BaseModel):
    """A validated user query. Immutable once issued."""

    model_config = ConfigDict(frozen=True)

    text: str
    language: ResponseLanguage = ResponseLanguage.JA
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TranslatedQuery(BaseModel):
    """English PubMed query derived 1:1 from a SearchQuery's text."""

    model_config = ConfigDict(frozen=True)

    source: str
    text: str

    def __str__(self) -> str:
        return self.text


class PipelineFailure(BaseModel):
    """Structured description of a terminal pipeline error."""

    model_config = ConfigDict(frozen=True)

    kind: str  # e.g. "translation_error"
    stage: PipelineStage
    message: str


class SearchResult(BaseModel):
    """Combined output of one pipeline invocation."""

    model_config = ConfigDict(frozen=True)

    query: SearchQuery
    translated_query: str
    articles: list[Article] = []
    total_results: int = 0
    summary: str | None = None  # None when no results or summarization failed
    error: PipelineFailure | None = None


class PipelineOutcome(BaseModel):
    """What the pipeline hands back to its caller: a result, an error, or both."""

    model_config = ConfigDict(frozen=True)

    status: PipelineStage
    result: SearchResult | None = None
    error: PipelineFailure | None = None
    stages: list[PipelineStage] = []  # stages visited, in order

    @property
    def ok(self) -> bool:
        return self.status in (PipelineStage.COMPLETE, PipelineStage.NO_RESULTS)
