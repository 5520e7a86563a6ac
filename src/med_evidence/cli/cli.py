"""Command-line interface for MedEvidence."""

import asyncio
import json
from pathlib import Path

import click
from dotenv import load_dotenv

from med_evidence.config import configure_logging, get_settings
from med_evidence.errors import MedEvidenceError
from med_evidence.models import PipelineOutcome, PipelineStage, ResponseLanguage
from med_evidence.pipeline.factory import build_pipeline
from med_evidence.services.llm import LLMClient
from med_evidence.services.translator import QueryTranslator


@click.group()
@click.version_option(package_name="med-evidence")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def main(verbose: bool):
    """MedEvidence: search PubMed in Japanese and get a summary."""
    load_dotenv()
    configure_logging("DEBUG" if verbose else get_settings().log_level)


async def _run_search(query: str, language: str, page: int) -> PipelineOutcome:
    pipeline = build_pipeline()
    try:
        return await pipeline.run(query, language=ResponseLanguage(language), page=page)
    finally:
        await pipeline.close()


@main.command()
@click.argument("query")
@click.option(
    "-l",
    "--language",
    type=click.Choice([lang.value for lang in ResponseLanguage]),
    default=ResponseLanguage.JA.value,
    show_default=True,
    help="Language of the summary",
)
@click.option("-p", "--page", default=1, show_default=True, help="Result page")
@click.option("-o", "--output", type=click.Path(), help="Output file path (JSON)")
def search(query: str, language: str, page: int, output: str | None):
    """Translate QUERY, search PubMed and summarize the results."""
    outcome = asyncio.run(_run_search(query, language, page))

    if outcome.error is not None:
        click.echo(
            f"Error [{outcome.error.kind}] at {outcome.error.stage.value}: "
            f"{outcome.error.message}",
            err=True,
        )

    result = outcome.result
    if result is not None:
        click.echo(f"Translated query: {result.translated_query}")
        click.echo(f"{result.total_results} results, showing {len(result.articles)}:")
        for i, article in enumerate(result.articles, 1):
            click.echo(f"  [{i}] {article.title} ({article.journal}, {article.year})")
            click.echo(f"      {article.url}")
        if result.summary:
            click.echo(f"\n{result.summary}")

    if output:
        Path(output).write_text(
            json.dumps(outcome.model_dump(mode="json"), ensure_ascii=False, indent=2)
        )
        click.echo(f"\nResults saved to: {output}")

    if outcome.status == PipelineStage.FAILED:
        raise SystemExit(1)


@main.command()
@click.argument("query")
def translate(query: str):
    """Show the PubMed query QUERY translates to."""

    async def _translate() -> str:
        translator = QueryTranslator(LLMClient.from_settings(get_settings()))
        return (await translator.translate(query)).text

    try:
        click.echo(asyncio.run(_translate()))
    except MedEvidenceError as e:
        raise click.ClickException(e.message) from e


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "med_evidence.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=get_settings().log_level.lower(),
    )


if __name__ == "__main__":
    main()
