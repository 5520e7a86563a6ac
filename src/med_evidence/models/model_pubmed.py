"""
Pydantic models for PubMed data.

These are the data contracts between the PubMed client and the rest of the
pipeline. The summarizer and the API only ever see these models, never raw
E-utilities responses.
"""

from pydantic import BaseModel, ConfigDict, model_validator

from med_evidence.constants import PUBMED_ARTICLE_URL


class Article(BaseModel):
    """A single PubMed article, normalized from an efetch record."""

    model_config = ConfigDict(frozen=True)

    pmid: str  # PubMed identifier (e.g. "38472913")
    title: str = ""
    authors: list[str] = []  # "Last Fore", in byline order
    journal: str = ""
    year: str = ""  # empty when PubMed has no usable date
    publication_date: str = ""  # YYYY, YYYY-MM or YYYY-MM-DD
    abstract: str = ""  # labelled sections joined; empty string if missing
    doi: str | None = None
    keywords: list[str] = []
    url: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_nones(cls, values: dict) -> dict:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for field_name, field_info in cls.model_fields.items():
            if (
                field_name in values
                and values[field_name] is None
                and field_info.default is not None
            ):
                values[field_name] = field_info.default
        if not values.get("url") and values.get("pmid"):
            values["url"] = PUBMED_ARTICLE_URL.format(pmid=values["pmid"])
        return values


class LiteraturePage(BaseModel):
    """One page of PubMed search results, in relevance order."""

    model_config = ConfigDict(frozen=True)

    articles: list[Article] = []
    total_results: int = 0
    page: int = 1
    page_size: int
