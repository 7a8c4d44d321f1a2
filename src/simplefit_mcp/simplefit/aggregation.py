"""Derived workout metrics.

Everything here is recomputed from set-level data on each call. The only
place results are written back onto a workout is `mark_completed`.
"""

from collections.abc import Iterable
from datetime import datetime

from simplefit_mcp.simplefit.models import Workout, WorkoutSet


def iter_sets(workout: Workout) -> Iterable[WorkoutSet]:
    for exercise in workout.exercises:
        yield from exercise.sets


def completed_sets_count(workout: Workout) -> int:
    return sum(1 for s in iter_sets(workout) if s.completed)


def planned_sets_count(workout: Workout) -> int:
    return sum(len(e.sets) for e in workout.exercises)


def completion_percentage(workout: Workout) -> int:
    """Completed share of planned sets, rounded half up. 0 when nothing is planned."""
    planned = planned_sets_count(workout)
    if planned == 0:
        return 0
    completed = completed_sets_count(workout)
    return (completed * 200 + planned) // (2 * planned)


def total_volume(workout: Workout) -> float:
    return sum(s.reps * s.weight for s in iter_sets(workout) if s.completed)


def total_reps(workout: Workout) -> int:
    return sum(s.reps for s in iter_sets(workout) if s.completed)


def muscle_groups_worked(workout: Workout) -> list[str]:
    groups = list(workout.muscle_groups_worked)
    for exercise in workout.exercises:
        for group in exercise.muscle_groups:
            if group and group not in groups:
                groups.append(group)
    return groups


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() / 60)


def refresh_totals(workout: Workout) -> Workout:
    """Rewrite the stored volume, reps and muscle groups from the set tree."""
    workout.total_volume = total_volume(workout)
    workout.total_reps = total_reps(workout)
    for group in muscle_groups_worked(workout):
        workout.add_muscle_group_worked(group)
    return workout


def mark_completed(workout: Workout, now: datetime) -> Workout:
    """Close a workout. Safe to repeat: totals are overwritten, not added to."""
    workout.completed = True
    workout.duration_minutes = duration_minutes(workout.date, now)
    return refresh_totals(workout)


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours}h"
    return f"{hours}h {rest}m"


def format_rest_time(seconds: int) -> str:
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}:{rest:02d}"


def summarize(workout: Workout) -> dict:
    return {
        "completed_sets": completed_sets_count(workout),
        "planned_sets": planned_sets_count(workout),
        "completion_percentage": completion_percentage(workout),
        "total_volume": total_volume(workout),
        "total_reps": total_reps(workout),
        "duration": format_duration(workout.duration_minutes),
        "muscle_groups": muscle_groups_worked(workout),
    }
