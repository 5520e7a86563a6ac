"""Pytest configuration and fixtures."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from med_evidence.models import Article
from med_evidence.services.llm import LLMClient


@pytest.fixture
def sample_articles() -> list[Article]:
    """Two normalized articles, in relevance order."""
    return [
        Article(
            pmid="31234567",
            title="Effectiveness of high-dose influenza vaccine in older adults",
            authors=["Smith John", "Tanaka Hiroshi"],
            journal="Vaccine",
            year="2019",
            publication_date="2019-06-15",
            abstract="RESULTS: High-dose vaccine reduced hospitalization by 24%.",
            doi="10.1016/j.vaccine.2019.01.001",
            keywords=["influenza", "elderly"],
        ),
        Article(
            pmid="32345678",
            title="Influenza vaccination and mortality in nursing home residents",
            authors=["Garcia Maria"],
            journal="Lancet Infect Dis",
            year="2020",
            publication_date="2020",
            abstract="Vaccination was associated with lower all-cause mortality.",
            keywords=[],
        ),
    ]


def make_llm_response(text: str) -> SimpleNamespace:
    """Shape of an Anthropic Messages API response with one text block."""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def llm_response():
    return make_llm_response


@pytest.fixture
def mock_llm() -> MagicMock:
    """LLMClient stand-in whose `complete` is an AsyncMock."""
    llm = MagicMock(spec=LLMClient)
    llm.complete = AsyncMock(return_value="")
    return llm
