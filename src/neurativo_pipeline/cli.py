"""
Command-line interface for the Neurativo content pipeline.

Extract and analyze content from URLs or local documents, and run the AI
operations (quiz, explanation, summary, learning path) through the
provider fallback chain.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import PipelineConfig
from .content_sources import (
    ContentExtractionError,
    analyze_document,
    extract_url_content,
    load_document_text,
)
from .fetcher import FetchError
from .llm_client import QuizParseError, extract_json, parse_quiz
from .models import (
    AIResponse,
    Difficulty,
    DocumentOptions,
    ExtractionOptions,
    QuestionType,
    QuizOptions,
)
from .orchestrator import FallbackOrchestrator, build_orchestrator

console = Console()


def _fail(label: str, error: Exception) -> None:
    console.print(f"[red]{label}:[/red] {error}")
    details = getattr(error, "details", None)
    if details:
        console.print(f"[dim]{details}[/dim]")
    sys.exit(1)


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def _load_source_text(source: str, config: PipelineConfig, digest: bool = False) -> str:
    """Readable text for SOURCE: extracted from a URL or read from a local file."""
    if _is_url(source):
        extracted = extract_url_content(
            source, ExtractionOptions(summarize=digest), config=config
        )
        return extracted.content
    text, file_type = load_document_text(source)
    document = analyze_document(text, Path(source).name, file_type, config=config)
    return document.quiz_ready_content if digest else document.content


def _orchestrator(ctx: click.Context) -> FallbackOrchestrator:
    if ctx.obj.get("orchestrator") is None:
        ctx.obj["orchestrator"] = build_orchestrator(pipeline_config=ctx.obj["config"])
    return ctx.obj["orchestrator"]


def _finish(ctx: click.Context, response: AIResponse) -> None:
    orchestrator = ctx.obj.get("orchestrator")
    if orchestrator is not None and orchestrator.usage_logger is not None:
        orchestrator.usage_logger.close()
    if response.error:
        console.print(f"[red]AI error ({response.provider or 'none'}):[/red] {response.error}")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show detailed output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Neurativo content ingestion and AI tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config", PipelineConfig.from_env())
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("url")
@click.option("--summarize", is_flag=True, default=False, help="Add summary, key points and topics.")
@click.option("--max-length", type=int, default=None, help="Truncate the content to N characters.")
@click.option("--focus", "focus_areas", multiple=True, help="Topic to rank first (repeatable).")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the raw JSON result.")
@click.pass_context
def extract(
    ctx: click.Context,
    url: str,
    summarize: bool,
    max_length: Optional[int],
    focus_areas: tuple[str, ...],
    as_json: bool,
) -> None:
    """Extract readable content from a web page."""
    options = ExtractionOptions(summarize=summarize, max_length=max_length, focus_areas=list(focus_areas))
    try:
        with console.status("Fetching and extracting..."):
            result = extract_url_content(url, options, config=ctx.obj["config"])
    except FetchError as e:
        _fail("Fetch error", e)
    except ContentExtractionError as e:
        _fail("Content extraction error", e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    meta = result.metadata
    console.print(Panel.fit(
        f"[bold]{result.title}[/bold]\n"
        f"{meta.source_url}\n"
        f"{meta.word_count} words | {meta.content_type} | language: {meta.language}",
        title="Extracted Content",
    ))
    if result.summary:
        console.print(f"\n[bold]Summary[/bold]\n{result.summary}")
    _print_list("Key Points", result.key_points)
    if result.topics:
        console.print(f"\n[cyan]Topics:[/cyan] {', '.join(result.topics)}")
    if ctx.obj["verbose"] or not summarize:
        console.print(f"\n{result.content}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--max-pages", type=int, default=None, help="Cap the estimated page count.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the raw JSON result.")
@click.pass_context
def analyze(ctx: click.Context, file: Path, max_pages: Optional[int], as_json: bool) -> None:
    """Analyze a local document (.txt, .md or .docx)."""
    try:
        text, file_type = load_document_text(file)
        document = analyze_document(
            text, file.name, file_type, DocumentOptions(max_pages=max_pages), config=ctx.obj["config"]
        )
    except ContentExtractionError as e:
        _fail("Document error", e)

    if as_json:
        click.echo(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        return

    meta = document.metadata
    console.print(Panel.fit(
        f"[bold]{document.title}[/bold]\n"
        f"{meta.file_name} ({meta.file_type})\n"
        f"{meta.word_count} words | ~{meta.page_count} page(s) | language: {meta.language}",
        title="Document Analysis",
    ))
    console.print(f"\n[bold]Summary[/bold]\n{document.summary}")
    _print_list("Key Points", document.key_points)
    if document.topics:
        console.print(f"\n[cyan]Topics:[/cyan] {', '.join(document.topics)}")
    if document.concepts:
        console.print(f"[cyan]Concepts:[/cyan] {', '.join(document.concepts)}")


@main.command()
@click.argument("source")
@click.option("--count", "-n", type=click.IntRange(min=1), default=5, show_default=True, help="Number of questions.")
@click.option(
    "--difficulty",
    type=click.Choice([d.value for d in Difficulty]),
    default=Difficulty.MEDIUM.value,
    show_default=True,
)
@click.option(
    "--type",
    "question_type",
    type=click.Choice([t.value for t in QuestionType]),
    default=QuestionType.MULTIPLE_CHOICE.value,
    show_default=True,
)
@click.option("--time-limit", type=click.IntRange(min=1), default=None, help="Seconds per question.")
@click.option("--explanations", is_flag=True, default=False, help="Ask for detailed explanations.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the raw quiz JSON.")
@click.pass_context
def quiz(
    ctx: click.Context,
    source: str,
    count: int,
    difficulty: str,
    question_type: str,
    time_limit: Optional[int],
    explanations: bool,
    as_json: bool,
) -> None:
    """Generate a quiz from a URL or a local document."""
    try:
        content = _load_source_text(source, ctx.obj["config"], digest=True)
    except FetchError as e:
        _fail("Fetch error", e)
    except ContentExtractionError as e:
        _fail("Content extraction error", e)

    options = QuizOptions(
        question_count=count,
        difficulty=difficulty,
        question_type=question_type,
        time_limit=time_limit,
        include_explanations=explanations,
    )
    with console.status("Generating quiz..."):
        response = _orchestrator(ctx).generate_quiz(content, options)
    _finish(ctx, response)

    try:
        quiz_data = parse_quiz(response.content)
    except QuizParseError as e:
        _fail(f"Invalid quiz from {response.provider}", e)

    if as_json:
        click.echo(json.dumps(quiz_data, indent=2, ensure_ascii=False))
        return

    console.print(Panel.fit(
        f"[bold]{quiz_data.get('title', 'Quiz')}[/bold]\n{quiz_data.get('description', '')}",
        title=f"Quiz ({response.provider})",
    ))
    table = Table(show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Question")
    table.add_column("Options", style="cyan")
    table.add_column("Answer", style="green")
    for i, question in enumerate(quiz_data["questions"], start=1):
        table.add_row(
            str(i),
            str(question.get("question", "")),
            "\n".join(str(o) for o in question.get("options") or []),
            str(question.get("correct_answer", "")),
        )
    console.print(table)
    _print_usage(response)


@main.command()
@click.argument("question")
@click.argument("user_answer")
@click.argument("correct_answer")
@click.option("--simple", is_flag=True, default=False, help="Ask for a short, simple explanation.")
@click.pass_context
def explain(ctx: click.Context, question: str, user_answer: str, correct_answer: str, simple: bool) -> None:
    """Explain why an answer is wrong."""
    response = _orchestrator(ctx).generate_explanation(question, user_answer, correct_answer, simple)
    _finish(ctx, response)
    console.print(Panel(response.content, title=f"Explanation ({response.provider})"))
    _print_usage(response)


@main.command()
@click.argument("source")
@click.pass_context
def summarize(ctx: click.Context, source: str) -> None:
    """Summarize a URL or a local document with the AI provider."""
    try:
        content = _load_source_text(source, ctx.obj["config"])
    except FetchError as e:
        _fail("Fetch error", e)
    except ContentExtractionError as e:
        _fail("Content extraction error", e)

    response = _orchestrator(ctx).summarize_content(content)
    _finish(ctx, response)
    console.print(Panel(response.content, title=f"Summary ({response.provider})"))
    _print_usage(response)


@main.command("learning-path")
@click.argument("goal")
@click.option("--timeframe", default="4 weeks", show_default=True)
@click.option(
    "--difficulty",
    type=click.Choice([d.value for d in Difficulty]),
    default=Difficulty.MEDIUM.value,
    show_default=True,
)
@click.pass_context
def learning_path(ctx: click.Context, goal: str, timeframe: str, difficulty: str) -> None:
    """Generate a learning path for a goal."""
    response = _orchestrator(ctx).generate_learning_path(goal, timeframe, difficulty)
    _finish(ctx, response)

    path = extract_json(response.content)
    if not isinstance(path, dict):
        console.print(Panel(response.content, title=f"Learning Path ({response.provider})"))
        return

    console.print(Panel.fit(
        f"[bold]{path.get('title', goal)}[/bold]\n{path.get('description', '')}",
        title=f"Learning Path ({response.provider})",
    ))
    _print_list("Topics", [str(t) for t in path.get("topics") or []])
    if path.get("schedule"):
        schedule = path["schedule"]
        console.print(f"\n[bold]Schedule[/bold]\n{schedule if isinstance(schedule, str) else json.dumps(schedule, indent=2)}")
    _print_list("Milestones", [str(m) for m in path.get("milestones") or []])


@main.command()
@click.pass_context
def providers(ctx: click.Context) -> None:
    """List registered AI providers."""
    orchestrator = _orchestrator(ctx)
    table = Table(title="AI Providers", show_header=True)
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Active", style="green")
    for name, provider in orchestrator.registry.providers.items():
        active = "*" if name == orchestrator.active_provider else ""
        table.add_row(name, getattr(provider, "model", "-"), active)
    console.print(table)


def _print_list(title: str, items: list[str]) -> None:
    if not items:
        return
    console.print(f"\n[bold]{title}[/bold]")
    for item in items:
        console.print(f"  - {item}")


def _print_usage(response: AIResponse) -> None:
    if response.usage:
        usage = response.usage
        console.print(
            f"\n[dim]{usage.input_tokens} in / {usage.output_tokens} out tokens, "
            f"${usage.cost:.4f}[/dim]"
        )


def run_cli() -> None:
    """Entry point for the CLI."""
    main(obj={})


if __name__ == "__main__":
    run_cli()
