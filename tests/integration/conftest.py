"""Shared fixtures for integration tests.

These hit live NCBI and Anthropic endpoints and only run when
MED_EVIDENCE_LIVE_TESTS=1 is set.
"""

import os

import pytest

from med_evidence.data_sources.pubmed import PubMedClient


def pytest_collection_modifyitems(config, items):
    if os.getenv("MED_EVIDENCE_LIVE_TESTS") == "1":
        return
    skip_live = pytest.mark.skip(reason="set MED_EVIDENCE_LIVE_TESTS=1 to run")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
async def pubmed_client():
    """Create and tear down a PubMedClient."""
    c = PubMedClient(api_key=os.getenv("NCBI_API_KEY"))
    yield c
    await c.close()
