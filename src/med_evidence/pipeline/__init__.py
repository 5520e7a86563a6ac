"""Search pipeline: translate → search → summarize."""

from med_evidence.pipeline.base import (
    BaseLiteratureClient,
    BaseSummarizer,
    BaseTranslator,
)
from med_evidence.pipeline.orchestrator import SearchPipeline

__all__ = [
    "BaseLiteratureClient",
    "BaseSummarizer",
    "BaseTranslator",
    "SearchPipeline",
]
