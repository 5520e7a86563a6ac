"""
Query translator for PubMed search.

Converts a free-text Japanese clinical question
(e.g. "高齢者のインフルエンザワクチンの有効性は？") into an English
keyword query PubMed handles well (e.g. "influenza vaccine elderly efficacy").
"""

import logging
import re

from med_evidence.constants import TRANSLATION_CACHE_TTL, TRANSLATION_MAX_TOKENS
from med_evidence.errors import LLMError, TranslationError, ValidationError
from med_evidence.models import TranslatedQuery
from med_evidence.pipeline.base import BaseTranslator
from med_evidence.services.llm import ChatMessage, LLMClient
from med_evidence.utils.cache import MemoryCache

logger = logging.getLogger(__name__)

# Hiragana, katakana and CJK unified ideographs
_JAPANESE_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")

TRANSLATION_SYSTEM_PROMPT = (
    "You are an expert translator of medical literature search queries. "
    "Translate Japanese clinical questions into queries suited to PubMed."
)

TRANSLATE_PROMPT = (
    "Translate the following Japanese medical literature search query into English "
    "for a PubMed search. Follow these rules:\n\n"
    "1. Produce a combination of search keywords, not a natural-language question.\n"
    "2. Use standard English medical terminology.\n"
    "3. Do not include articles (a, an, the) or prepositions (in, of, at).\n"
    "4. Keep only the keywords that matter for the search.\n\n"
    "Japanese query: {query}\n\n"
    "Return ONLY the English translation, with no explanation or extra text."
)


def contains_japanese(text: str) -> bool:
    return bool(_JAPANESE_RE.search(text))


class QueryTranslator(BaseTranslator):
    """LLM-backed Japanese → English PubMed query translator."""

    def __init__(
        self,
        llm: LLMClient,
        *,
        max_tokens: int = TRANSLATION_MAX_TOKENS,
        cache: MemoryCache | None = None,
    ):
        self.llm = llm
        self.max_tokens = max_tokens
        self.cache = cache if cache is not None else MemoryCache(TRANSLATION_CACHE_TTL)

    def build_messages(self, query: str) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=TRANSLATION_SYSTEM_PROMPT),
            ChatMessage(role="user", content=TRANSLATE_PROMPT.format(query=query)),
        ]

    async def translate(self, query: str) -> TranslatedQuery:
        """
        Translate `query` into an English PubMed query.

        Queries with no Japanese characters are already usable and are
        returned trimmed without calling the model.

        Raises:
            ValidationError: query is empty.
            TranslationError: the model call failed after retries, or the
                model returned nothing.
        """
        source = query.strip()
        if not source:
            raise ValidationError(
                "query must not be empty", field="query", reason="required"
            )

        if not contains_japanese(source):
            logger.info("Query %r has no Japanese text; skipping translation", source)
            return TranslatedQuery(source=source, text=source)

        cached = await self.cache.get("translation", {"query": source})
        if cached is not None:
            return TranslatedQuery(source=source, text=cached)

        try:
            response = await self.llm.complete(
                self.build_messages(source), max_tokens=self.max_tokens
            )
        except LLMError as e:
            logger.error("Translation failed for %r: %s", source, e)
            raise TranslationError(f"Translation failed: {e.message}") from e

        translated = response.strip()
        if not translated:
            raise TranslationError("Translation returned an empty query")

        logger.info("Translated %r → %r", source, translated)
        await self.cache.set("translation", {"query": source}, translated)
        return TranslatedQuery(source=source, text=translated)
