"""
Error taxonomy for the search pipeline.

Every error carries a machine-readable ``kind`` (used as the API error code)
and the pipeline ``stage`` it was raised from, when known.
"""

from med_evidence.constants import ERROR_MESSAGES


class MedEvidenceError(Exception):
    """Base exception for all pipeline failures."""

    kind = "internal_error"

    def __init__(self, message: str, *, stage: str | None = None):
        self.message = message
        self.stage = stage
        super().__init__(message)


class ValidationError(MedEvidenceError):
    """Caller input is malformed. Never retried."""

    kind = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        reason: str | None = None,
        stage: str | None = None,
    ):
        self.field = field
        self.reason = reason
        super().__init__(message, stage=stage)

    @property
    def message_key(self) -> str:
        """Key into ERROR_MESSAGES, e.g. 'query_required'."""
        if self.field and self.reason:
            return f"{self.field}_{self.reason}"
        return self.kind


class LLMError(MedEvidenceError):
    """The language-model call failed (after retries, if retryable)."""

    kind = "llm_error"

    def __init__(self, message: str, *, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class TranslationError(MedEvidenceError):
    kind = "translation_error"


class LiteratureFetchError(MedEvidenceError):
    """PubMed network or parse failure."""

    kind = "literature_fetch_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        stage: str | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, stage=stage)


class SummarizationError(MedEvidenceError):
    kind = "summarization_error"


class SearchTimeoutError(MedEvidenceError):
    kind = "timeout"


def user_message(error: MedEvidenceError | str, language: str = "ja") -> str:
    """Return the localized, user-facing message for an error or error kind.

    Validation errors get field-specific text ("query required"); everything
    else gets a generic per-kind message so upstream details never leak.
    """
    lang = language if language in ("ja", "en") else "ja"
    if isinstance(error, ValidationError):
        return ERROR_MESSAGES.get(
            (error.message_key, lang), ERROR_MESSAGES[("validation_error", lang)]
        )
    kind = error.kind if isinstance(error, MedEvidenceError) else error
    return ERROR_MESSAGES.get((kind, lang), ERROR_MESSAGES[("internal_error", lang)])
