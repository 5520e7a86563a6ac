"""MedEvidence: Japanese-language PubMed search with LLM summaries."""

__version__ = "0.1.0"
