"""Standalone script to hit the PubMed E-utilities API and inspect raw responses."""

import asyncio
import json
import logging
import os

import aiohttp
from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
QUERY = "influenza vaccine elderly efficacy"


async def esearch(session: aiohttp.ClientSession, query: str, retmax: int = 3) -> dict:
    """Relevance-ordered PMIDs for a query."""
    params = {
        "db": "pubmed",
        "term": query,
        "retmode": "json",
        "sort": "relevance",
        "retmax": retmax,
    }
    if os.getenv("NCBI_API_KEY"):
        params["api_key"] = os.environ["NCBI_API_KEY"]
    async with session.get(f"{BASE_URL}/esearch.fcgi", params=params) as resp:
        logger.info("esearch status: %s", resp.status)
        return await resp.json(content_type=None)


async def efetch(session: aiohttp.ClientSession, pmids: list[str]) -> str:
    """Raw efetch XML for the given PMIDs."""
    params = {"db": "pubmed", "id": ",".join(pmids), "retmode": "xml", "rettype": "abstract"}
    async with session.get(f"{BASE_URL}/efetch.fcgi", params=params) as resp:
        logger.info("efetch status: %s", resp.status)
        return await resp.text()


async def main() -> None:
    load_dotenv()
    async with aiohttp.ClientSession() as session:
        logger.info("--- esearch for '%s' ---", QUERY)
        result = await esearch(session, QUERY)
        print(json.dumps(result, indent=2))

        pmids = result.get("esearchresult", {}).get("idlist", [])
        if pmids:
            logger.info("--- efetch for %s ---", pmids)
            xml_text = await efetch(session, pmids)
            print(xml_text[:3000])


if __name__ == "__main__":
    asyncio.run(main())
