"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from med_evidence import __version__
from med_evidence.api.schemas import (
    ErrorResponse,
    QuestionsRequest,
    QuestionsResponse,
    SearchRequest,
    SearchResponse,
)
from med_evidence.config import configure_logging, get_settings
from med_evidence.errors import ValidationError, user_message
from med_evidence.models import PipelineStage
from med_evidence.pipeline import SearchPipeline
from med_evidence.pipeline.factory import build_pipeline
from med_evidence.services.llm import LLMClient
from med_evidence.services.questions import FollowUpQuestionGenerator

logger = logging.getLogger(__name__)


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient.from_settings(get_settings())


@lru_cache
def get_pipeline() -> SearchPipeline:
    return build_pipeline(get_settings(), llm=get_llm_client())


@lru_cache
def get_question_generator() -> FollowUpQuestionGenerator:
    return FollowUpQuestionGenerator(get_llm_client())


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    yield
    if get_pipeline.cache_info().currsize:
        await get_pipeline().close()


app = FastAPI(
    title="MedEvidence API",
    description="Japanese-language PubMed search with LLM-generated summaries",
    version=__version__,
    lifespan=lifespan,
)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Missing/ill-typed body fields are reported as 400, like pipeline validation
    errors = exc.errors()
    field = errors[0]["loc"][-1] if errors and errors[0].get("loc") else None
    if field == "query":
        message = user_message(
            ValidationError("query required", field="query", reason="required")
        )
    else:
        message = user_message("validation_error")
    return _error(400, "validation_error", message)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.post(
    "/search",
    response_model=SearchResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def search(
    body: SearchRequest, pipeline: SearchPipeline = Depends(get_pipeline)
):
    """Translate, search PubMed and summarize.

    A partial outcome (articles but no summary) is a 200 with `summary: null`
    and `error` set.
    """
    language = body.response_language
    try:
        search_query = pipeline.validate(body.query, language)
    except ValidationError as e:
        return _error(400, e.kind, user_message(e, language.value))

    outcome = await pipeline.run(search_query, page=body.page)

    if outcome.status == PipelineStage.FAILED:
        failure = outcome.error
        if failure.kind == "validation_error":
            return _error(400, failure.kind, user_message(failure.kind, language.value))
        logger.error(
            "Search failed at %s (%s): %s",
            failure.stage.value,
            failure.kind,
            failure.message,
        )
        return _error(500, failure.kind, user_message(failure.kind, language.value))

    result = outcome.result
    return SearchResponse(
        status=outcome.status.value,
        query=result.query.text,
        translated_query=result.translated_query,
        articles=result.articles,
        total_results=result.total_results,
        summary=result.summary,
        error=outcome.error,
    )


@app.post(
    "/generate-questions",
    response_model=QuestionsResponse,
    responses={400: {"model": ErrorResponse}},
)
async def generate_questions(
    body: QuestionsRequest,
    generator: FollowUpQuestionGenerator = Depends(get_question_generator),
):
    """Suggest follow-up questions for a summary."""
    language = body.response_language
    try:
        questions = await generator.generate(
            body.summary, body.previous_query, language
        )
    except ValidationError as e:
        return _error(400, e.kind, user_message(e, language.value))
    return QuestionsResponse(questions=questions)
