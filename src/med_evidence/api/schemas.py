"""Request/response bodies for the HTTP API (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field

from med_evidence.models import Article, PipelineFailure, ResponseLanguage


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(_CamelModel):
    query: str
    response_language: ResponseLanguage = Field(
        default=ResponseLanguage.JA, alias="responseLanguage"
    )
    page: int = Field(default=1, ge=1)


class SearchResponse(_CamelModel):
    status: str
    query: str
    translated_query: str = Field(alias="translatedQuery")
    articles: list[Article]
    total_results: int = Field(alias="totalResults")
    summary: str | None
    error: PipelineFailure | None = None


class QuestionsRequest(_CamelModel):
    summary: str = ""
    previous_query: str = Field(default="", alias="previousQuery")
    response_language: ResponseLanguage = Field(
        default=ResponseLanguage.JA, alias="responseLanguage"
    )


class QuestionsResponse(BaseModel):
    questions: list[str]


class ErrorResponse(BaseModel):
    code: str
    message: str
