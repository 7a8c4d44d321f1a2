"""SimpleFit MCP Server."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from mcp.server.fastmcp import FastMCP

from simplefit_mcp.simplefit import aggregation
from simplefit_mcp.simplefit.client import SimpleFitClient
from simplefit_mcp.simplefit.config import get_settings
from simplefit_mcp.simplefit.exceptions import AuthenticationError
from simplefit_mcp.simplefit.models import Exercise, Workout
from simplefit_mcp.simplefit.results import capture

logger = logging.getLogger(__name__)

T = TypeVar("T")

mcp = FastMCP("simplefit")
client = SimpleFitClient()


async def _ensure_login() -> None:
    """Auto-login using settings if not already authenticated."""
    if client.is_authenticated:
        return

    settings = get_settings()
    if not settings.email or not settings.password:
        raise AuthenticationError(
            "SIMPLEFIT_EMAIL and SIMPLEFIT_PASSWORD environment variables must be set."
        )
    await client.login(settings.email, settings.password)


async def _call(operation: Callable[[], Awaitable[T]], render: Callable[[T], str]) -> str:
    """Log in, run `operation` and render it, or describe the failure."""
    async def run() -> T:
        await _ensure_login()
        return await operation()

    result = await capture(run())
    if result.is_error:
        return f"Error: {result.message}"
    return render(result.data)


def _format_exercise(ex: Exercise) -> str:
    groups = ", ".join(ex.muscle_groups) or "-"
    equipment = f", {ex.equipment}" if ex.equipment else ""
    return f"- **{ex.name}** (id: {ex.id}) [{groups}{equipment}]"


def _format_exercises(exercises: list[Exercise]) -> str:
    if not exercises:
        return "No exercises found."
    lines = [f"Found {len(exercises)} exercises:\n"]
    lines.extend(_format_exercise(ex) for ex in exercises)
    return "\n".join(lines)


def _format_workout(w: Workout) -> str:
    summary = aggregation.summarize(w)
    date_str = w.date.strftime("%Y-%m-%d %H:%M")
    status = "completed" if w.completed else f"{summary['completion_percentage']}% done"
    lines = [f"## {w.routine_name or 'Workout'} ({date_str}, {status})", f"id: {w.id}"]
    if w.completed:
        lines.append(
            f"Duration: {aggregation.format_duration(w.duration_minutes)} | "
            f"Volume: {summary['total_volume']:.0f} kg | Reps: {summary['total_reps']}"
        )
    for i, ex in enumerate(w.exercises):
        lines.append(f"  [{i}] **{ex.exercise_name}** (rest {aggregation.format_rest_time(ex.rest_seconds)})")
        for s in ex.sets:
            lines.append(f"    - {s.display_string()}")
    if summary["muscle_groups"]:
        lines.append(f"Muscle groups: {', '.join(summary['muscle_groups'])}")
    return "\n".join(lines)


@mcp.tool()
async def list_exercises(muscle_group: str | None = None, equipment: str | None = None) -> str:
    """List exercises from the SimpleFit catalog.

    Args:
        muscle_group: Only exercises that train this muscle group.
        equipment: Only exercises that use this equipment.
    """
    async def operation():
        if muscle_group or equipment:
            groups = [muscle_group] if muscle_group else None
            return await client.catalog.filter(muscle_groups=groups, equipment=equipment)
        return await client.catalog.get_all()

    return await _call(operation, _format_exercises)


@mcp.tool()
async def search_exercises(query: str) -> str:
    """Search the exercise catalog by name (case-insensitive substring).

    Args:
        query: Part of the exercise name.
    """
    return await _call(lambda: client.catalog.search(query), _format_exercises)


@mcp.tool()
async def list_routines() -> str:
    """List the user's workout routines."""
    def render(routines) -> str:
        if not routines:
            return "No routines found."
        lines = [f"Found {len(routines)} routines:\n"]
        for r in routines:
            difficulty = f", {r.difficulty.value}" if r.difficulty else ""
            lines.append(
                f"- **{r.name}** (id: {r.id}, {r.exercise_count} exercises, "
                f"{r.total_sets} sets{difficulty}, completed {r.times_completed}x)"
            )
        return "\n".join(lines)

    return await _call(client.routines.list_for_user, render)


@mcp.tool()
async def get_routine(routine_id: str) -> str:
    """Show a routine and its exercise prescriptions.

    Args:
        routine_id: The routine ID (from list_routines).
    """
    async def operation():
        routine = await client.routines.get(routine_id)
        details = await client.catalog.get_by_ids([e.exercise_id for e in routine.exercises])
        return routine, {e.id: e.name for e in details}

    def render(result) -> str:
        routine, names = result
        lines = [f"# {routine.name}"]
        if routine.description:
            lines.append(f"{routine.description}\n")
        for e in routine.sorted_exercises():
            name = names.get(e.exercise_id, e.exercise_id)
            lines.append(f"- **{name}**: {e.sets_reps_string} @ {e.formatted_weight()}")
        return "\n".join(lines)

    return await _call(operation, render)


@mcp.tool()
async def start_workout(routine_id: str) -> str:
    """Start a new workout from a routine. Weights are pre-filled from the last session.

    Args:
        routine_id: The routine ID (from list_routines).
    """
    return await _call(lambda: client.start_workout(routine_id), _format_workout)


@mcp.tool()
async def complete_set(
    workout_id: str, exercise_index: int, set_number: int, reps: int, weight: float,
) -> str:
    """Record a performed set.

    Args:
        workout_id: The workout ID.
        exercise_index: Position of the exercise in the workout, starting at 0.
        set_number: Set number within the exercise, starting at 1.
        reps: Repetitions performed.
        weight: Weight used in kg (0 for bodyweight).
    """
    return await _call(
        lambda: client.complete_set(workout_id, exercise_index, set_number, reps, weight),
        _format_workout,
    )


@mcp.tool()
async def uncomplete_set(workout_id: str, exercise_index: int, set_number: int) -> str:
    """Mark a previously recorded set as not done.

    Args:
        workout_id: The workout ID.
        exercise_index: Position of the exercise in the workout, starting at 0.
        set_number: Set number within the exercise, starting at 1.
    """
    return await _call(
        lambda: client.set_completed(workout_id, exercise_index, set_number, False),
        _format_workout,
    )


@mcp.tool()
async def finish_workout(workout_id: str, rating: float | None = None, note: str | None = None) -> str:
    """Finish a workout, computing its duration and totals.

    Args:
        workout_id: The workout ID.
        rating: Optional rating from 0 to 5.
        note: Optional note about the session.
    """
    return await _call(
        lambda: client.finish_workout(workout_id, rating=rating, note=note), _format_workout,
    )


@mcp.tool()
async def get_workout(workout_id: str) -> str:
    """Show a workout with its sets and progress.

    Args:
        workout_id: The workout ID.
    """
    return await _call(lambda: client.get_workout(workout_id), _format_workout)


@mcp.tool()
async def get_active_workout() -> str:
    """Show the most recent workout that has not been finished."""
    return await _call(
        client.active_workout,
        lambda w: _format_workout(w) if w else "No active workout.",
    )


@mcp.tool()
async def get_workouts(since_days: int | None = None, limit: int = 20) -> str:
    """Fetch workout history, newest first.

    Args:
        since_days: Only return workouts from the last N days. Omit for all workouts.
        limit: Maximum number of workouts to return (default 20).
    """
    async def operation():
        if since_days is None:
            return await client.workouts.list_for_user()
        now = datetime.now(timezone.utc)
        return await client.workouts.list_in_date_range(now - timedelta(days=since_days), now)

    def render(workouts) -> str:
        if not workouts:
            return "No workouts found."
        return "\n\n".join(_format_workout(w) for w in workouts[:limit])

    return await _call(operation, render)


@mcp.tool()
async def delete_workout(workout_id: str) -> str:
    """Delete a workout and rebuild account statistics.

    Args:
        workout_id: The workout ID.
    """
    return await _call(lambda: client.delete_workout(workout_id), lambda _: "Workout deleted.")


@mcp.tool()
async def get_statistics(refresh: bool = False) -> str:
    """Show account totals: workouts, minutes, sets and weight lifted.

    Args:
        refresh: Rebuild the totals from workout history first.
    """
    operation = client.refresh_statistics if refresh else client.get_statistics

    def render(stats) -> str:
        return "\n".join([
            f"Workouts: {stats.total_workouts}",
            f"Time trained: {aggregation.format_duration(stats.total_minutes)}",
            f"Sets: {stats.total_sets}",
            f"Weight lifted: {stats.total_weight:.0f} kg",
        ])

    return await _call(operation, render)


@mcp.tool()
async def toggle_favorite_exercise(exercise_id: str) -> str:
    """Add an exercise to favorites, or remove it if it is already one.

    Args:
        exercise_id: The exercise ID.
    """
    return await _call(
        lambda: client.users.toggle_favorite_exercise(exercise_id),
        lambda now_favorite: "Added to favorites." if now_favorite else "Removed from favorites.",
    )


def main():
    logging.basicConfig(level=get_settings().log_level)
    mcp.run()


if __name__ == "__main__":
    main()
