"""Turn routine templates into fresh workout sessions."""

import logging
from datetime import datetime

from simplefit_mcp.simplefit.models import (
    Exercise, Routine, RoutineExercise, Workout, WorkoutExercise, WorkoutSet, utcnow,
)

logger = logging.getLogger(__name__)


def build_sets(routine_exercise: RoutineExercise) -> list[WorkoutSet]:
    weight = 0.0 if routine_exercise.use_bodyweight else routine_exercise.weight
    return [
        WorkoutSet(
            set_number=i + 1,
            target_reps=routine_exercise.reps_per_set,
            weight=weight,
            completed=False,
        )
        for i in range(max(routine_exercise.sets, 0))
    ]


def build_exercise(
    routine_exercise: RoutineExercise,
    details: Exercise | None = None,
) -> WorkoutExercise:
    muscle_groups: list[str] = []
    if routine_exercise.muscle_group_id:
        muscle_groups.append(routine_exercise.muscle_group_id)
    if details:
        for group in details.muscle_groups:
            if group not in muscle_groups:
                muscle_groups.append(group)

    return WorkoutExercise(
        exercise_id=routine_exercise.exercise_id,
        exercise_name=details.name if details else "Unknown Exercise",
        sets=build_sets(routine_exercise),
        note=routine_exercise.note,
        order=routine_exercise.order,
        rest_seconds=routine_exercise.rest_seconds,
        muscle_groups=muscle_groups,
    )


def _carry_over_weights(exercise: WorkoutExercise, previous: WorkoutExercise) -> None:
    by_number = {s.set_number: s for s in previous.sets if s.completed}
    for workout_set in exercise.sets:
        last = by_number.get(workout_set.set_number)
        if last is not None:
            workout_set.weight = last.weight


def materialize(
    routine: Routine,
    user_id: str | None = None,
    date: datetime | None = None,
    details: dict[str, Exercise] | None = None,
    previous: Workout | None = None,
) -> Workout:
    """Create an independent workout from `routine`.

    Args:
        routine: Template to copy. It is read, never modified.
        user_id: Owner of the new workout.
        date: Session start; defaults to now (UTC).
        details: Catalog records keyed by exercise id, used for names and muscle groups.
        previous: An earlier session of the same routine. Weights of its
            completed sets pre-fill matching sets, except for bodyweight exercises.
    """
    details = details or {}
    previous_by_id: dict[str, WorkoutExercise] = {}
    if previous is not None:
        for prev_exercise in previous.exercises:
            previous_by_id.setdefault(prev_exercise.exercise_id, prev_exercise)

    workout = Workout(
        user_id=user_id,
        routine_id=routine.id,
        routine_name=routine.name,
        date=date or utcnow(),
        completed=False,
    )

    for routine_exercise in routine.sorted_exercises():
        exercise = build_exercise(routine_exercise, details.get(routine_exercise.exercise_id))
        prev_exercise = previous_by_id.get(routine_exercise.exercise_id)
        if prev_exercise is not None and not routine_exercise.use_bodyweight:
            _carry_over_weights(exercise, prev_exercise)
        workout.add_exercise(exercise)
        for group in exercise.muscle_groups:
            workout.add_muscle_group_worked(group)

    logger.debug(
        "Materialized routine %s into %d exercises", routine.id, workout.exercise_count,
    )
    return workout
