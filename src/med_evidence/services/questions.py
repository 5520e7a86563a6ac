"""
Follow-up question suggestions.

Given a summary and the query that produced it, ask the LLM for up to three
questions a clinician is likely to ask next. The reply must match the
FollowUpQuestions schema; anything else falls back to question-like lines in
the text, then to a fixed default list.
"""

import json
import logging
import re

from pydantic import ValidationError as SchemaError

from med_evidence.constants import MAX_FOLLOW_UP_QUESTIONS, QUESTIONS_MAX_TOKENS
from med_evidence.errors import LLMError, ValidationError
from med_evidence.models import FollowUpQuestions, ResponseLanguage
from med_evidence.services.llm import ChatMessage, LLMClient

logger = logging.getLogger(__name__)

# Returned when the reply can't be parsed into questions
DEFAULT_QUESTIONS: dict[ResponseLanguage, list[str]] = {
    ResponseLanguage.JA: [
        "副作用や注意点は？",
        "他の治療法との比較は？",
        "最新の研究結果は？",
    ],
    ResponseLanguage.EN: [
        "What are the side effects and precautions?",
        "How does it compare with other treatments?",
        "What does the latest research show?",
    ],
}

# Returned when the LLM call itself fails
UNAVAILABLE_QUESTIONS: dict[ResponseLanguage, list[str]] = {
    ResponseLanguage.JA: [
        "詳細な治療方法は？",
        "副作用について教えて",
        "最新のガイドラインは？",
    ],
    ResponseLanguage.EN: [
        "What are the treatment details?",
        "Tell me about the side effects.",
        "What do the latest guidelines say?",
    ],
}

QUESTIONS_SYSTEM_PROMPT = (
    "You are a medical expert. From a medical summary, generate the related "
    "questions a physician would most likely want to ask next. Questions must be "
    "specific, practical and directly related to the summary."
)

QUESTIONS_PROMPT = (
    "Below is a summary of medical search results. Generate 3 related questions a "
    "physician would want to ask next.\n\n"
    'Previous question: "{previous_query}"\n'
    "Summary:\n{summary}\n\n"
    "Requirements:\n"
    "1. Each question relates directly to the content of the summary.\n"
    "2. Ask what a practicing physician would actually want to know.\n"
    "3. Avoid anything the previous question already answered.\n"
    "4. Keep each question short and clear.\n"
    "5. Use the specific drugs, diseases and treatments named in the summary.\n"
    "6. {language_directive}\n\n"
    "Respond in JSON:\n"
    '{{"questions": ["question 1", "question 2", "question 3"]}}'
)

_LANGUAGE_DIRECTIVES = {
    ResponseLanguage.JA: "Write the questions in Japanese.",
    ResponseLanguage.EN: "Write the questions in English.",
}

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s*")


def parse_follow_up_questions(response: str) -> list[str] | None:
    """Extract questions from an LLM reply, or None if none can be found."""
    match = _JSON_OBJECT_RE.search(response)
    if match:
        try:
            return FollowUpQuestions.model_validate(
                json.loads(match.group())
            ).questions
        except (json.JSONDecodeError, SchemaError) as e:
            logger.warning("Follow-up question JSON rejected: %s", e)

    # Fallback: bullet or numbered lines that read as questions
    questions = []
    for line in response.splitlines():
        text = _BULLET_RE.sub("", line).strip().strip('"')
        if text and ("?" in text or "？" in text):
            questions.append(text)
    try:
        return FollowUpQuestions(questions=questions).questions
    except SchemaError:
        return None


class FollowUpQuestionGenerator:
    def __init__(self, llm: LLMClient, *, max_tokens: int = QUESTIONS_MAX_TOKENS):
        self.llm = llm
        self.max_tokens = max_tokens

    async def generate(
        self,
        summary: str,
        previous_query: str,
        language: ResponseLanguage = ResponseLanguage.JA,
    ) -> list[str]:
        """Return 1-3 follow-up questions. Never raises for bad model output."""
        if not summary or not summary.strip():
            raise ValidationError(
                "summary is required", field="summary", reason="required"
            )
        if not previous_query or not previous_query.strip():
            raise ValidationError(
                "previous query is required",
                field="previous_query",
                reason="required",
            )

        language = ResponseLanguage(language)
        prompt = QUESTIONS_PROMPT.format(
            previous_query=previous_query.strip(),
            summary=summary.strip(),
            language_directive=_LANGUAGE_DIRECTIVES[language],
        )
        messages = [
            ChatMessage(role="system", content=QUESTIONS_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

        try:
            response = await self.llm.complete(
                messages, max_tokens=self.max_tokens, temperature=0.3
            )
        except LLMError as e:
            logger.error("Follow-up question generation failed: %s", e)
            return list(UNAVAILABLE_QUESTIONS[language])

        questions = parse_follow_up_questions(response)
        if questions is None:
            logger.info("No usable questions in LLM reply; using defaults")
            return list(DEFAULT_QUESTIONS[language])
        return questions[:MAX_FOLLOW_UP_QUESTIONS]
