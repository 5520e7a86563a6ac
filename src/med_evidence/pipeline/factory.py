"""Wire a SearchPipeline from application settings."""

from med_evidence.config import Settings, get_settings
from med_evidence.data_sources.pubmed import PubMedClient
from med_evidence.pipeline.orchestrator import SearchPipeline
from med_evidence.services.llm import LLMClient
from med_evidence.services.summarizer import Summarizer
from med_evidence.services.translator import QueryTranslator


def build_pipeline(
    settings: Settings | None = None, llm: LLMClient | None = None
) -> SearchPipeline:
    """Build the production pipeline. Pass `llm` to share one LLM client."""
    settings = settings or get_settings()
    llm = llm or LLMClient.from_settings(settings)
    return SearchPipeline(
        QueryTranslator(llm),
        PubMedClient.from_settings(settings),
        Summarizer(llm, max_tokens=settings.llm_max_tokens),
        max_query_length=settings.max_query_length,
        allow_partial=settings.allow_partial_results,
        timeout=settings.pipeline_timeout_seconds,
    )
