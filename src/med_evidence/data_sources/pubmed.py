"""
PubMed API client.

Two E-utilities calls per search:
  1. esearch: find PMIDs matching a query, in relevance order (JSON)
  2. efetch:  fetch article records for those PMIDs (XML)

Identical searches are served from an in-memory cache for
`cache.ttl_seconds`; outbound calls are spaced by the token-bucket limiter.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Any

from med_evidence.config import Settings
from med_evidence.constants import (
    MONTH_NUMBERS,
    NCBI_BASE_URL,
    PUBMED_PAGE_SIZE,
    PUBMED_USER_AGENT,
)
from med_evidence.data_sources.base_client import (
    BaseClient,
    CacheConfig,
    ClientConfig,
    DataSourceError,
    RateLimitConfig,
    RequestContext,
)
from med_evidence.errors import LiteratureFetchError, ValidationError
from med_evidence.models import Article, LiteraturePage
from med_evidence.pipeline.base import BaseLiteratureClient
from med_evidence.utils.cache import MemoryCache
from med_evidence.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\d{4}")


class PubMedClient(BaseClient, BaseLiteratureClient):
    """Client for querying PubMed/NCBI APIs."""

    def __init__(
        self,
        base_url: str = NCBI_BASE_URL,
        api_key: str | None = None,
        page_size: int = PUBMED_PAGE_SIZE,
        config: ClientConfig | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        max_retries: int | None = None,
    ) -> None:
        super().__init__(config, retry_policy=retry_policy, max_retries=max_retries)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or None
        self.page_size = page_size
        self.cache = MemoryCache(
            self.config.cache.ttl_seconds,
            max_entries=self.config.cache.max_entries,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> PubMedClient:
        config = ClientConfig(
            rate_limit=RateLimitConfig(
                requests_per_second=settings.pubmed_rate_limit_per_second
            ),
            cache=CacheConfig(ttl_seconds=settings.pubmed_cache_ttl_seconds),
            timeout_seconds=settings.request_timeout_seconds,
        )
        return cls(
            base_url=settings.pubmed_base_url,
            api_key=settings.ncbi_api_key,
            page_size=settings.pubmed_page_size,
            config=config,
        )

    @property
    def _source_name(self) -> str:
        return "pubmed"

    @property
    def _default_headers(self) -> dict[str, str]:
        return {"User-Agent": PUBMED_USER_AGENT}

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/esearch.fcgi"

    @property
    def fetch_url(self) -> str:
        return f"{self.base_url}/efetch.fcgi"

    def _with_api_key(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.api_key:
            return {**params, "api_key": self.api_key}
        return params

    async def search(self, query: str, page: int = 1) -> LiteraturePage:
        """Search PubMed and return one page of normalized articles.

        Zero hits is not an error: an empty page with total_results=0 is
        returned. Network and parse failures raise LiteratureFetchError.
        """
        if not query or not query.strip():
            raise ValidationError(
                "query must not be empty", field="query", reason="required"
            )
        if page < 1:
            raise ValidationError("page must be >= 1", field="page", reason="invalid")

        query = query.strip()
        cache_params = {"query": query, "page": page, "page_size": self.page_size}
        cached = await self.cache.get("pubmed_search", cache_params)
        if cached is not None:
            return cached

        try:
            pmids, total = await self._esearch(query, page)
            articles = await self.fetch_articles(pmids)
        except DataSourceError as e:
            logger.error("PubMed search failed for %r: %s", query, e)
            raise LiteratureFetchError(str(e), status_code=e.status_code) from e

        result = LiteraturePage(
            articles=articles,
            total_results=total,
            page=page,
            page_size=self.page_size,
        )
        logger.info(
            "PubMed search %r page=%d: %d of %d results",
            query,
            page,
            len(articles),
            total,
        )
        await self.cache.set("pubmed_search", cache_params, result)
        return result

    async def _esearch(self, query: str, page: int) -> tuple[list[str], int]:
        """Return (PMIDs for the requested page, total hit count)."""
        params = self._with_api_key(
            {
                "db": "pubmed",
                "term": query,
                "retmode": "json",
                "sort": "relevance",
                "retstart": (page - 1) * self.page_size,
                "retmax": self.page_size,
            }
        )
        data = await self._rest_get(
            self.search_url,
            params,
            context=RequestContext(source=self._source_name, method="esearch"),
        )
        return self._parse_esearch(data)

    def _parse_esearch(self, data: Any) -> tuple[list[str], int]:
        if not isinstance(data, dict) or not isinstance(
            data.get("esearchresult"), dict
        ):
            raise DataSourceError(self._source_name, "Malformed esearch response")
        result = data["esearchresult"]
        if "ERROR" in result:
            raise DataSourceError(
                self._source_name, f"esearch error: {result['ERROR']}"
            )

        idlist = result.get("idlist", [])
        if not isinstance(idlist, list):
            raise DataSourceError(
                self._source_name, f"Malformed esearch idlist: {idlist!r}"
            )
        pmids = [str(pmid) for pmid in idlist]
        count = result.get("count", "0")
        # Older responses wrapped the count in a list
        if isinstance(count, list):
            count = count[0] if count else "0"
        try:
            total = int(count)
        except (TypeError, ValueError) as e:
            raise DataSourceError(
                self._source_name, f"Invalid result count: {count!r}"
            ) from e
        return pmids, total

    async def fetch_articles(self, pmids: list[str]) -> list[Article]:
        """Fetch and normalize articles, preserving the order of `pmids`."""
        if not pmids:
            return []

        params = self._with_api_key(
            {
                "db": "pubmed",
                "id": ",".join(pmids),
                "retmode": "xml",
                "rettype": "abstract",
            }
        )
        xml_text = await self._rest_get_xml(
            self.fetch_url,
            params,
            context=RequestContext(source=self._source_name, method="efetch"),
        )

        by_pmid = {a.pmid: a for a in self._parse_pubmed_xml(xml_text)}
        missing = [p for p in pmids if p not in by_pmid]
        if missing:
            logger.warning("efetch returned no record for PMIDs %s", missing)
        return [by_pmid[p] for p in pmids if p in by_pmid]

    def _parse_pubmed_xml(self, xml_text: str) -> list[Article]:
        """Parse an efetch XML response into Article objects."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise DataSourceError(self._source_name, f"Failed to parse XML: {e}")

        articles = []
        for article_elem in root.findall(".//PubmedArticle"):
            pmid = self._xml_text(article_elem, ".//MedlineCitation/PMID")
            if not pmid:
                continue

            year, publication_date = self._parse_pub_date(article_elem)
            articles.append(
                Article(
                    pmid=pmid,
                    title=self._xml_text(article_elem, ".//ArticleTitle") or "",
                    authors=self._parse_authors(article_elem),
                    journal=self._xml_text(article_elem, ".//Journal/Title") or "",
                    year=year,
                    publication_date=publication_date,
                    abstract=self._parse_abstract(article_elem),
                    doi=self._parse_doi(article_elem),
                    keywords=[
                        text
                        for kw in article_elem.findall(".//KeywordList/Keyword")
                        if (text := self._elem_text(kw))
                    ],
                )
            )

        return articles

    def _parse_abstract(self, article_elem: ET.Element) -> str:
        # Structured abstracts have several labelled sections
        parts = []
        for abs_elem in article_elem.findall(".//Abstract/AbstractText"):
            label = abs_elem.get("Label", "")
            text = self._elem_text(abs_elem)
            if label and text:
                parts.append(f"{label}: {text}")
            elif text:
                parts.append(text)
        return " ".join(parts)

    def _parse_authors(self, article_elem: ET.Element) -> list[str]:
        authors = []
        for author in article_elem.findall(".//AuthorList/Author"):
            last_name = self._xml_text(author, "LastName")
            if last_name:
                given = self._xml_text(author, "ForeName") or self._xml_text(
                    author, "Initials"
                )
                authors.append(f"{last_name} {given}" if given else last_name)
                continue
            collective = self._xml_text(author, "CollectiveName")
            if collective:
                authors.append(collective)
        return authors

    def _parse_pub_date(self, article_elem: ET.Element) -> tuple[str, str]:
        """Return (year, YYYY[-MM[-DD]]) from the journal issue date."""
        pub_date = article_elem.find(".//Journal/JournalIssue/PubDate")
        if pub_date is None:
            return "", ""

        year = self._xml_text(pub_date, "Year")
        if not year:
            medline_date = self._xml_text(pub_date, "MedlineDate") or ""
            match = _YEAR_RE.search(medline_date)
            return (match.group(), match.group()) if match else ("", "")

        parts = [year]
        month = self._xml_text(pub_date, "Month")
        if month:
            month = MONTH_NUMBERS.get(month[:3].lower(), month.zfill(2))
            parts.append(month)
            day = self._xml_text(pub_date, "Day")
            if day:
                parts.append(day.zfill(2))
        return year, "-".join(parts)

    def _parse_doi(self, article_elem: ET.Element) -> str | None:
        for path in (
            ".//Article/ELocationID[@EIdType='doi']",
            "PubmedData/ArticleIdList/ArticleId[@IdType='doi']",
        ):
            doi = self._xml_text(article_elem, path)
            if doi:
                return doi
        return None

    @staticmethod
    def _elem_text(elem: ET.Element) -> str:
        """All text inside an element, inline markup (<i>, <sup>) included."""
        return " ".join("".join(elem.itertext()).split())

    @classmethod
    def _xml_text(cls, elem: ET.Element, path: str) -> str | None:
        """Safely extract text from an XML element."""
        found = elem.find(path)
        if found is None:
            return None
        return cls._elem_text(found) or None
