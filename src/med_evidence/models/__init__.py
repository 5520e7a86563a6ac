"""Data models for MedEvidence."""

from med_evidence.models.model_pubmed import Article, LiteraturePage
from med_evidence.models.model_questions import FollowUpQuestions
from med_evidence.models.model_search import (
    PipelineFailure,
    PipelineOutcome,
    PipelineStage,
    ResponseLanguage,
    SearchQuery,
    SearchResult,
    TranslatedQuery,
)

__all__ = [
    "Article",
    "FollowUpQuestions",
    "LiteraturePage",
    "PipelineFailure",
    "PipelineOutcome",
    "PipelineStage",
    "ResponseLanguage",
    "SearchQuery",
    "SearchResult",
    "TranslatedQuery",
]
