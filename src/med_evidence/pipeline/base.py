"""Stage interfaces the search pipeline is composed from."""

from abc import ABC, abstractmethod

from med_evidence.models import (
    Article,
    LiteraturePage,
    ResponseLanguage,
    TranslatedQuery,
)


class BaseTranslator(ABC):
    """Turns a free-text clinical query into an English PubMed query."""

    @abstractmethod
    async def translate(self, query: str) -> TranslatedQuery:
        pass


class BaseLiteratureClient(ABC):
    """Searches a literature source and returns normalized articles."""

    @abstractmethod
    async def search(self, query: str, page: int = 1) -> LiteraturePage:
        pass

    async def close(self) -> None:
        """Release network resources. No-op unless the client holds any."""


class BaseSummarizer(ABC):
    """Produces a clinician-readable summary of a set of articles."""

    @abstractmethod
    async def summarize(
        self,
        articles: list[Article],
        language: ResponseLanguage = ResponseLanguage.JA,
    ) -> str:
        pass
