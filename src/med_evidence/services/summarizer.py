"""Article summarizer: renders articles into one prompt and asks the LLM for key findings."""

import logging

from med_evidence.constants import LLM_MAX_TOKENS
from med_evidence.errors import LLMError, SummarizationError, ValidationError
from med_evidence.models import Article, ResponseLanguage
from med_evidence.pipeline.base import BaseSummarizer
from med_evidence.services.llm import ChatMessage, LLMClient

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert in summarizing medical research papers. Summarize the key "
    "findings of the papers as concise bullet points and include specific numbers "
    "and statistics."
)

ARTICLE_BLOCK = (
    "Paper {index}:\n"
    "- Title: {title}\n"
    "- Authors: {authors}\n"
    "- Journal: {journal}\n"
    "- Year: {year}\n"
    "- Abstract: {abstract}\n"
    "- PMID: {pmid}\n"
    "- DOI: {doi}\n"
    "- Keywords: {keywords}\n"
)

SUMMARY_INSTRUCTIONS = (
    "Summary format:\n"
    "- Describe the main findings of the papers in 3-5 bullet points.\n"
    "- Keep each bullet to 1-2 concise sentences.\n"
    "- Use standard medical terminology.\n"
    "- Leave out background and objectives; focus on findings and conclusions.\n"
    "- When numbers or statistics are reported, state them explicitly.\n"
    "- Cite the papers you draw on as [1], [2], ... using the paper numbers above.\n"
)

LANGUAGE_DIRECTIVES: dict[ResponseLanguage, str] = {
    ResponseLanguage.JA: "Write the summary in Japanese.",
    ResponseLanguage.EN: "Write the summary in English.",
}


def render_article(index: int, article: Article) -> str:
    return ARTICLE_BLOCK.format(
        index=index,
        title=article.title,
        authors=", ".join(article.authors),
        journal=article.journal,
        year=article.year or "N/A",
        abstract=article.abstract,
        pmid=article.pmid or "N/A",
        doi=article.doi or "N/A",
        keywords=", ".join(article.keywords),
    )


def build_summary_prompt(
    articles: list[Article], language: ResponseLanguage = ResponseLanguage.JA
) -> str:
    """Render articles, in input order, into the summary prompt.

    Deterministic: the same articles and language always give the same text.
    """
    blocks = "\n".join(
        render_article(index, article) for index, article in enumerate(articles, 1)
    )
    return (
        "Summarize the key findings of the following medical papers as concise "
        "bullet points.\n\n"
        f"Papers:\n{blocks}\n"
        f"{SUMMARY_INSTRUCTIONS}"
        f"- {LANGUAGE_DIRECTIVES[ResponseLanguage(language)]}\n"
    )


class Summarizer(BaseSummarizer):
    def __init__(self, llm: LLMClient, *, max_tokens: int = LLM_MAX_TOKENS):
        self.llm = llm
        self.max_tokens = max_tokens

    async def summarize(
        self,
        articles: list[Article],
        language: ResponseLanguage = ResponseLanguage.JA,
    ) -> str:
        """Summarize `articles` in a single stateless LLM call.

        Raises:
            ValidationError: no articles were given.
            SummarizationError: the LLM call failed after retries or returned
                an empty completion.
        """
        if not articles:
            raise ValidationError(
                "cannot summarize an empty article list",
                field="articles",
                reason="required",
            )

        messages = [
            ChatMessage(role="system", content=SUMMARY_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_summary_prompt(articles, language)),
        ]
        try:
            summary = await self.llm.complete(messages, max_tokens=self.max_tokens)
        except LLMError as e:
            logger.error("Summarization of %d articles failed: %s", len(articles), e)
            raise SummarizationError(f"Summarization failed: {e.message}") from e

        summary = summary.strip()
        if not summary:
            raise SummarizationError("Summarization returned an empty response")
        logger.info("Summarized %d articles (%d chars)", len(articles), len(summary))
        return summary
