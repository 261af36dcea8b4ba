"""Cadence CLI: queue planning, interactive review, algorithm management and configuration."""

import asyncio
import json
import logging
import sys
import time
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any, Literal

import typer
from pydantic import ValidationError

from cadence.application.config import EngineConfig, resolve_config
from cadence.application.migration import AlgorithmSettings
from cadence.application.queue_builder import get_card_counts
from cadence.application.registry import (
    LearnerProfile,
    build_default_registry,
    describe_config_errors,
)
from cadence.application.study_service import StudyService
from cadence.domain.errors import CadenceError
from cadence.domain.models import ItemStatus
from cadence.infrastructure.adapters import YamlItemRepository, YamlProgressRepository

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced repetition scheduling for the command line.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_with_overrides(ctx: typer.Context | None = None, **overrides: Any) -> EngineConfig:
    if ctx is not None and ctx.obj:
        overrides.setdefault("data_dir", ctx.obj.get("data_dir"))
        overrides.setdefault("verbose", ctx.obj.get("verbose"))
    return resolve_config(overrides)


def _build_service(config: EngineConfig) -> StudyService:
    return StudyService(
        YamlItemRepository(config.data_dir),
        YamlProgressRepository(config.data_dir),
        build_default_registry(),
        config,
    )


def _fail(message: str) -> typer.Exit:
    typer.secho(f"Error: {message}", fg="red", err=True)
    return typer.Exit(1)


def _config_failure(error: ValidationError) -> typer.Exit:
    return _fail(f"Invalid algorithm config: {'; '.join(describe_config_errors(error))}")


def _join(values: list[str]) -> str:
    return ", ".join(values) or "-"


def _to_json(value: Any) -> str:
    def default(obj: Any) -> Any:
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        if isinstance(obj, Path):
            return str(obj)
        raise TypeError(f"Not serializable: {type(obj).__name__}")

    return json.dumps(value, indent=2, default=default)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding <scope>.yaml item files."),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["verbose"] = verbose
    if verbose > 1:
        logging.getLogger("cadence").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Planning commands
# ---------------------------------------------------------------------------


@app.command()
def queue(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to plan.")],
    max_new: Annotated[int | None, typer.Option(help="Cap on new cards.")] = None,
    max_review: Annotated[int | None, typer.Option(help="Cap on review cards.")] = None,
    max_minutes: Annotated[
        float | None, typer.Option(help="Trim new, then review cards to fit this budget.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show today's [bold green]study queue[/bold green] for a scope."""
    config = _resolve_with_overrides(
        ctx,
        max_new_cards_per_day=max_new,
        max_review_cards_per_day=max_review,
        max_session_minutes=max_minutes,
    )
    try:
        daily = asyncio.run(_build_service(config).daily_queue(scope))
    except CadenceError as e:
        raise _fail(str(e)) from e

    if json_output:
        typer.echo(
            _to_json(
                {
                    "new_cards": [item.id for item in daily.new_cards],
                    "learning_cards": [item.id for item in daily.learning_cards],
                    "review_cards": [item.id for item in daily.review_cards],
                    "total_cards": daily.total_cards,
                    "estimated_study_time": daily.estimated_study_time,
                }
            )
        )
        return

    typer.echo(
        f"New: {len(daily.new_cards)}  Learning: {len(daily.learning_cards)}"
        f"  Review: {len(daily.review_cards)}  Total: {daily.total_cards}"
    )
    typer.echo(f"Estimated study time: {daily.estimated_study_time} min")
    for item in daily.all_items():
        typer.echo(f"  [{item.status.value}] {item.id}  due {item.due_date.isoformat()}")


@app.command()
def workload(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to project.")],
    days: Annotated[int, typer.Option(min=1, help="Number of days to project.")] = 7,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Project the daily workload for the coming days."""
    config = _resolve_with_overrides(ctx)
    try:
        projection = asyncio.run(_build_service(config).workload(scope, days))
    except CadenceError as e:
        raise _fail(str(e)) from e

    if json_output:
        typer.echo(_to_json([asdict(day) for day in projection]))
        return

    for day in projection:
        typer.echo(
            f"{day.date.isoformat()}  new {day.new_cards:>3}  learning {day.learning_cards:>3}"
            f"  review {day.review_cards:>3}  total {day.total_cards:>3}"
            f"  ~{day.estimated_study_time} min"
        )


@app.command()
def counts(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to count.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Count items per status."""
    config = _resolve_with_overrides(ctx)
    try:
        items = asyncio.run(_build_service(config).load(scope))
    except CadenceError as e:
        raise _fail(str(e)) from e

    result = get_card_counts(items)
    if json_output:
        typer.echo(_to_json(asdict(result)))
    else:
        typer.echo(
            f"New: {result.new}  Learning: {result.learning}  Review: {result.review}"
            f"  Suspended: {result.suspended}  Total: {result.total}"
        )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

REVIEW_PROMPT = "Response [again/hard/good/easy] or [skip/undo/quit]"


async def _run_review(service: StudyService, scope: str, learner: str, settings: AlgorithmSettings):
    session = await service.start_session(scope, learner, settings)
    if session.is_completed():
        typer.secho("Nothing due. Well done!", fg="green")
        return None

    while (item := session.get_current_card()) is not None:
        progress = session.get_progress()
        typer.echo(
            f"\n({progress['current'] + 1}/{progress['total']}) "
            f"[{item.status.value}] {item.id}"
        )
        started = time.monotonic()
        choice = typer.prompt(REVIEW_PROMPT, default="good").strip().lower()
        elapsed_ms = (time.monotonic() - started) * 1000

        match choice:
            case "quit" | "q":
                break
            case "skip" | "s":
                session.skip_current_card()
            case "undo" | "u":
                if not session.undo_last_review():
                    typer.secho("Nothing to undo.", fg="yellow")
            case _:
                try:
                    outcome = session.process_response(choice, elapsed_ms)
                except ValueError:
                    typer.secho(f"Unknown response: {choice}", fg="yellow")
                    continue
                unit = "min" if outcome.update.status is ItemStatus.LEARNING else "day(s)"
                typer.echo(
                    f"  -> {outcome.update.status.value}, next in {outcome.update.interval} {unit}"
                )

    return await service.complete_session(session)


@app.command()
def review(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to study.")],
    learner: Annotated[str, typer.Option(help="Learner id for stats and streaks.")] = "default",
    algorithm: Annotated[
        str | None, typer.Option(help="Algorithm override (defaults to config).")
    ] = None,
):
    """[bold green]Study[/bold green] the due items of a scope interactively."""
    config = _resolve_with_overrides(ctx, algorithm=algorithm)
    service = _build_service(config)
    try:
        report = asyncio.run(_run_review(service, scope, learner, config.algorithm_settings()))
    except CadenceError as e:
        raise _fail(str(e)) from e
    except ValidationError as e:
        raise _config_failure(e) from e

    if report is None:
        return

    summary = report.summary
    typer.echo(
        f"\nStudied {summary.cards_studied} cards, {summary.correct_answers} correct "
        f"({summary.stats.accuracy_rate:.0f}%) in {summary.study_duration}s."
    )
    if report.streak:
        typer.echo(f"Streak: {report.streak} day(s)")
    if report.conflicts:
        typer.secho(
            f"{len(report.conflicts)} item(s) changed elsewhere and were not saved: "
            + ", ".join(report.conflicts),
            fg="yellow",
        )


# ---------------------------------------------------------------------------
# Algorithms
# ---------------------------------------------------------------------------


@app.command()
def migrate(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to migrate.")],
    to_algorithm: Annotated[str, typer.Option("--to", help="Target algorithm.")],
    from_algorithm: Annotated[
        str | None, typer.Option("--from", help="Source algorithm (defaults to config).")
    ] = None,
):
    """Switch every item in a scope to another scheduling algorithm."""
    config = _resolve_with_overrides(ctx)
    source = AlgorithmSettings(name=from_algorithm or config.algorithm)
    target = AlgorithmSettings(name=to_algorithm)

    try:
        result = asyncio.run(_build_service(config).change_algorithm(scope, source, target))
    except CadenceError as e:
        raise _fail(str(e)) from e
    except ValidationError as e:
        raise _config_failure(e) from e

    typer.secho(f"Migrated {result.migrated_count} items to {to_algorithm}.", fg="green")
    if result.errors:
        typer.secho(f"{len(result.errors)} errors:", fg="red")
        for error in result.errors:
            typer.echo(f"  {error}")
        raise typer.Exit(1)


@app.command()
def algorithms(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the registered scheduling algorithms."""
    registry = build_default_registry()
    descriptors = registry.available_algorithms()

    if json_output:
        typer.echo(
            _to_json(
                [
                    {
                        "name": d.name,
                        "display_name": d.display_name,
                        "version": d.version,
                        "complexity": d.complexity.value,
                        "features": list(d.features),
                        "default_config": d.default_config,
                    }
                    for d in descriptors
                ]
            )
        )
        return

    for d in descriptors:
        typer.secho(f"{d.name} ({d.display_name} v{d.version})", bold=True)
        typer.echo(f"  {d.description}")
        typer.echo(f"  Complexity: {d.complexity.value}")
        typer.echo(f"  Features: {', '.join(d.features)}")


@app.command()
def compare(
    first: Annotated[str, typer.Argument(help="First algorithm name.")],
    second: Annotated[str, typer.Argument(help="Second algorithm name.")],
):
    """Compare two algorithms' features and complexity."""
    registry = build_default_registry()
    try:
        comparison = registry.compare_algorithms(first, second)
    except CadenceError as e:
        raise _fail(str(e)) from e

    typer.echo(comparison.complexity)
    features = comparison.features
    typer.echo(f"Only {comparison.first.display_name}: {_join(features.unique_to_first)}")
    typer.echo(f"Only {comparison.second.display_name}: {_join(features.unique_to_second)}")
    typer.echo(f"Common: {_join(features.common)}")
    typer.secho(comparison.recommendation, fg="green")


@app.command()
def recommend(
    experience: Annotated[
        Literal["beginner", "intermediate", "advanced"], typer.Option(help="Learner experience.")
    ] = "intermediate",
    simplicity: Annotated[int, typer.Option(min=1, max=5, help="Preference for simplicity.")] = 3,
    customization: Annotated[
        int, typer.Option(min=1, max=5, help="Preference for customization.")
    ] = 3,
):
    """Suggest an algorithm for a learner profile."""
    profile = LearnerProfile(
        experience=experience, simplicity=simplicity, customization=customization
    )
    typer.echo(build_default_registry().get_recommended_algorithm(profile))


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    scope: Annotated[str, typer.Argument(help="Scope (item file) to add to.")],
    item_ids: Annotated[list[str], typer.Argument(help="Ids of the new items.")],
    algorithm: Annotated[
        str | None, typer.Option(help="Algorithm override (defaults to config).")
    ] = None,
):
    """Add new items to a scope."""
    config = _resolve_with_overrides(ctx, algorithm=algorithm)
    registry = build_default_registry()
    repo = YamlItemRepository(config.data_dir)

    try:
        strategy = registry.create_algorithm(config.algorithm, config.algorithm_config)
        existing = asyncio.run(repo.load_items_for_scope(scope))
        known = {item.id for item in existing}
        duplicates = [item_id for item_id in item_ids if item_id in known]
        if duplicates:
            raise _fail(f"Items already exist: {', '.join(duplicates)}")
        created = [strategy.initialize_new_card(item_id) for item_id in item_ids]
    except CadenceError as e:
        raise _fail(str(e)) from e
    except ValidationError as e:
        raise _config_failure(e) from e

    repo.add_items(scope, created)
    typer.secho(f"Added {len(created)} items to {scope}.", fg="green")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP scheduling server."""
    import uvicorn

    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
