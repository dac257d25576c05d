"""CLI entry point for numdrill."""

import json
import logging
import random
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

import click

from numdrill.config.settings import Settings, XPPipeline


def _jsonable(value):
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_jsonable(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _emit(value) -> None:
    click.echo(json.dumps(_jsonable(value), indent=2))


def _parse_times(ctx, param, value):
    if not value:
        return []
    try:
        times = [float(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter("expected comma-separated milliseconds, e.g. 1100,1250,980")
    if any(t < 0 for t in times):
        raise click.BadParameter("response times cannot be negative")
    return times


def _check_counts(total: int, correct: int) -> None:
    if correct > total:
        raise click.BadParameter(f"correct ({correct}) cannot exceed total ({total})", param_hint="--correct")


times_option = click.option(
    "--times", callback=_parse_times, default="", help="Comma-separated response times in ms"
)


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Config file (default ~/.numdrill/config.yaml)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def main(ctx: click.Context, config_path: Path, verbose: bool) -> None:
    """numdrill: adaptive arithmetic difficulty and progression engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["settings"] = Settings.load(config_path)


@main.command()
@click.option("--total", type=click.IntRange(min=0), required=True, help="Answers given")
@click.option("--correct", type=click.IntRange(min=0), required=True, help="Correct answers")
@times_option
@click.option("--duration", type=float, default=None,
              help="Assessment length (s); defaults to the configured assessment duration")
@click.pass_context
def place(ctx: click.Context, total: int, correct: int, times: list, duration: float) -> None:
    """Place a new learner from a timed assessment."""
    from numdrill.engine.adaptive import ProgressionState
    from numdrill.engine.placement import AssessmentMetrics, compute_starting_placement, placement_message

    _check_counts(total, correct)
    settings: Settings = ctx.obj["settings"]
    if duration is None:
        duration = settings.placement.assessment_duration_minutes * 60
    result = compute_starting_placement(AssessmentMetrics(total, correct, times, duration), settings.placement)
    payload = _jsonable(result)
    payload["message"] = placement_message(result.competence_group)
    payload["state"] = ProgressionState.initial(settings.adaptive, result.starting_level).to_dict()
    _emit(payload)


@main.command()
@click.option("--total", type=click.IntRange(min=0), required=True)
@click.option("--correct", type=click.IntRange(min=0), required=True)
@times_option
@click.option("--duration", type=float, required=True, help="Session length (s)")
@click.option("--session-type", default="daily", show_default=True,
              type=click.Choice(["daily", "quick_fire", "practice", "skill_drill", "unlimited", "assessment"]))
@click.option("--in-game-xp", type=click.IntRange(min=0), default=0, show_default=True,
              help="XP earned during play (bonus pipeline)")
@click.option("--pipeline", type=click.Choice([p.value for p in XPPipeline]), default=None,
              help="Override the configured XP pipeline")
@click.pass_context
def xp(ctx, total, correct, times, duration, session_type, in_game_xp, pipeline) -> None:
    """Score a finished session: fluency and session XP."""
    from numdrill.engine.fluency import compute_fluency, fluency_label
    from numdrill.engine.xp import calculate_combined_session_xp, calculate_full_session_xp

    _check_counts(total, correct)
    settings: Settings = ctx.obj["settings"]
    fluency = compute_fluency(total, correct, times, duration, settings.fluency)
    chosen = XPPipeline(pipeline) if pipeline else settings.xp.pipeline
    if chosen is XPPipeline.MULTIPLIER:
        result = calculate_full_session_xp(total, fluency, duration, session_type, settings.xp)
    else:
        result = calculate_combined_session_xp(in_game_xp, fluency, total, duration, session_type, settings.xp)
    _emit({
        "pipeline": chosen,
        "fluency": fluency,
        "fluency_label": fluency_label(fluency.fluency_score),
        "xp": result,
    })


@main.command()
@click.option("--level", type=click.IntRange(min=1), required=True)
@click.option("--xp-into-level", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--earned", type=click.IntRange(min=0), default=0, show_default=True)
@click.pass_context
def level(ctx: click.Context, level: int, xp_into_level: int, earned: int) -> None:
    """Apply earned XP to a level and show the carryover."""
    from numdrill.engine.leveling import apply_xp_and_level_up

    _emit(apply_xp_and_level_up(level, xp_into_level, earned, ctx.obj["settings"].levels))


@main.command()
@click.option("--level", type=click.IntRange(min=1), required=True)
@click.option("--count", type=click.IntRange(min=1), default=10, show_default=True)
@click.option("--seed", type=int, default=None, help="Seed for reproducible questions")
@click.option("--profiles", is_flag=True, help="Use the curriculum difficulty profiles")
@click.pass_context
def questions(ctx: click.Context, level: int, count: int, seed, profiles: bool) -> None:
    """Generate a batch of questions for a level."""
    from numdrill.engine.generator import generate_question
    from numdrill.engine.profile_generator import OperationScheduler, generate_profile_question

    settings: Settings = ctx.obj["settings"]
    rng = random.Random(seed)
    scheduler = OperationScheduler(settings.generator.history_window)
    history: list[str] = []
    batch = []
    for _ in range(count):
        if profiles:
            q = generate_profile_question(level, history, rng=rng, scheduler=scheduler, config=settings.generator)
        else:
            q = generate_question(level, history, rng=rng, config=settings.generator)
        history.append(q.text)
        batch.append(q)
    _emit(batch)


@main.command()
@click.option("--level", type=int, required=True)
def profile(level: int) -> None:
    """Show the difficulty parameters and profile for a level."""
    from numdrill.engine.difficulty import get_difficulty_params
    from numdrill.engine.profiles import get_difficulty_profile

    _emit({"params": get_difficulty_params(level), "profile": get_difficulty_profile(level)})


@main.command()
@click.option("--kind", type=click.Choice(["rounding", "doubling", "halving"]), required=True)
@click.option("--correct", type=click.IntRange(min=0), default=0, show_default=True,
              help="Correct answers so far (sets the tier)")
@click.option("--count", type=click.IntRange(min=1), default=5, show_default=True)
@click.option("--seed", type=int, default=None)
def drill(kind: str, correct: int, count: int, seed) -> None:
    """Generate skill-drill questions."""
    from numdrill.engine.skill_drills import generate_drill_question

    rng = random.Random(seed)
    _emit([generate_drill_question(kind, correct, rng) for _ in range(count)])


@main.command("init-config")
@click.pass_context
def init_config(ctx: click.Context) -> None:
    """Write the current settings to the config file."""
    settings: Settings = ctx.obj["settings"]
    path = settings.save(ctx.obj["config_path"])
    click.echo(f"Wrote {path}")
