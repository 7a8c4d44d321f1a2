"""Account-level workout statistics.

Both update paths are projections of the same `WorkoutCompleted` event: a
full rebuild folds the events of every completed workout, an incremental
update applies a single event to the stored rollup. Keeping one event shape
is what keeps the two paths equal.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel

from simplefit_mcp.simplefit import aggregation
from simplefit_mcp.simplefit.models import Workout, WorkoutStatistics
from simplefit_mcp.simplefit.repositories import UserRepository

logger = logging.getLogger(__name__)


class WorkoutCompleted(BaseModel):
    """What one finished workout contributes to the rollup."""
    workout_id: str | None = None
    workouts: int = 1
    minutes: int = 0
    sets: int = 0
    weight: float = 0.0


def completion_event(workout: Workout) -> WorkoutCompleted:
    return WorkoutCompleted(
        workout_id=workout.id,
        minutes=workout.duration_minutes,
        sets=aggregation.completed_sets_count(workout),
        weight=aggregation.total_volume(workout),
    )


def apply(stats: WorkoutStatistics, event: WorkoutCompleted) -> WorkoutStatistics:
    return WorkoutStatistics(
        total_workouts=stats.total_workouts + event.workouts,
        total_minutes=stats.total_minutes + event.minutes,
        total_sets=stats.total_sets + event.sets,
        total_weight=stats.total_weight + event.weight,
    )


def project(events: Iterable[WorkoutCompleted]) -> WorkoutStatistics:
    stats = WorkoutStatistics()
    for event in events:
        stats = apply(stats, event)
    return stats


def recompute(workouts: Iterable[Workout]) -> WorkoutStatistics:
    """Rebuild totals from history. Only completed workouts count."""
    return project(completion_event(w) for w in workouts if w.completed)


class StatisticsAccumulator:
    """Keeps a user's stored rollup up to date."""

    def __init__(self, users: UserRepository):
        self._users = users

    async def increment_workout_count(self, user_id: str) -> None:
        await self._users.increment_statistics(user_id, {"total_workouts": 1})

    async def add_minutes(self, user_id: str, minutes: int) -> None:
        await self._users.increment_statistics(user_id, {"total_minutes": minutes})

    async def record(self, user_id: str, workout: Workout) -> WorkoutCompleted:
        """Apply one completed workout to the stored rollup without a history scan.

        The whole event lands in a single write: either every total moves or
        none does.
        """
        event = completion_event(workout)
        await self._users.increment_statistics(user_id, {
            "total_workouts": event.workouts,
            "total_minutes": event.minutes,
            "total_sets": event.sets,
            "total_weight": event.weight,
        })
        logger.debug("Recorded workout %s for %s", workout.id, user_id)
        return event

    async def rebuild(self, user_id: str, workouts: Iterable[Workout]) -> WorkoutStatistics:
        stats = recompute(workouts)
        await self._users.save_statistics(user_id, stats)
        logger.info("Rebuilt statistics for %s: %d workouts", user_id, stats.total_workouts)
        return stats
