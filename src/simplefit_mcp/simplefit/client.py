"""SimpleFit client: routines, live workout sessions and statistics."""

import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar

from simplefit_mcp.simplefit import aggregation
from simplefit_mcp.simplefit.auth import FirebaseAuth
from simplefit_mcp.simplefit.catalog import ExerciseCatalog
from simplefit_mcp.simplefit.config import Settings, get_settings
from simplefit_mcp.simplefit.exceptions import InvalidInputError
from simplefit_mcp.simplefit.materializer import build_exercise, materialize
from simplefit_mcp.simplefit.models import (
    Exercise, Routine, RoutineExercise, Workout, WorkoutSet, WorkoutStatistics, utcnow,
)
from simplefit_mcp.simplefit.repositories import (
    RoutineRepository, StoreExerciseSource, UserRepository, WorkoutRepository,
)
from simplefit_mcp.simplefit.results import wait_for_result
from simplefit_mcp.simplefit.statistics import StatisticsAccumulator
from simplefit_mcp.simplefit.store import DocumentStore, FirestoreStore
from simplefit_mcp.simplefit.writes import SecondaryWriteQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SimpleFitClient:
    """Client for the SimpleFit backend via Firebase/Firestore."""

    def __init__(
        self,
        settings: Settings | None = None,
        auth: FirebaseAuth | None = None,
        store: DocumentStore | None = None,
    ):
        self._settings = settings or get_settings()
        self._auth = auth or FirebaseAuth(
            api_key=self._settings.api_key, timeout=self._settings.request_timeout,
        )
        self._store = store or FirestoreStore(
            self._auth, self._settings.project_id, timeout=self._settings.request_timeout,
        )
        self.writes = SecondaryWriteQueue()
        self.catalog = ExerciseCatalog(StoreExerciseSource(self._store))
        self.users = UserRepository(self._store, self._auth)
        self.routines = RoutineRepository(self._store, self._auth)
        self.workouts = WorkoutRepository(self._store, self._auth, self.users, self.writes)
        self.statistics = StatisticsAccumulator(self.users)

    @property
    def is_authenticated(self) -> bool:
        return self._auth.is_authenticated

    @property
    def user_id(self) -> str | None:
        return self._auth.user_id

    async def login(self, email: str, password: str) -> None:
        await self._auth.login(email, password)

    def logout(self) -> None:
        self._auth.logout()
        self.catalog.clear_cache()

    async def wait(self, awaitable: Awaitable[T]) -> T:
        return await wait_for_result(awaitable, self._settings.result_timeout)

    # --- Routines ---

    async def _exercise_details(self, routine: Routine) -> dict[str, Exercise]:
        exercises = await self.catalog.get_by_ids([e.exercise_id for e in routine.exercises])
        return {e.id: e for e in exercises}

    async def create_routine(self, routine: Routine) -> Routine:
        details = await self._exercise_details(routine)
        routine.refresh_muscle_groups(details)
        await self.routines.save(routine)
        return routine

    async def copy_routine(self, routine_id: str, name: str | None = None) -> Routine:
        original = await self.routines.get(routine_id)
        copy = original.copy_for(self._auth.current_user_id(), name)
        await self.routines.save(copy)
        return copy

    # --- Workout sessions ---

    async def start_workout(
        self,
        routine_id: str,
        now: datetime | None = None,
        use_history: bool = True,
    ) -> Workout:
        """Materialize and persist a new session of `routine_id`."""
        user_id = self._auth.current_user_id()
        routine = await self.routines.get(routine_id)
        details = await self._exercise_details(routine)
        previous = await self.workouts.last_for_routine(routine_id) if use_history else None

        workout = materialize(routine, user_id=user_id, date=now, details=details, previous=previous)
        await self.workouts.create(workout)
        return workout

    async def start_empty_workout(self, now: datetime | None = None) -> Workout:
        workout = Workout(user_id=self._auth.current_user_id(), date=now or utcnow())
        await self.workouts.create(workout)
        return workout

    async def add_exercise(
        self,
        workout_id: str,
        exercise_id: str,
        sets: int = 3,
        reps_per_set: int = 10,
        weight: float = 0.0,
    ) -> Workout:
        workout = await self.workouts.get(workout_id)
        details = await self.catalog.get(exercise_id)
        routine_exercise = RoutineExercise(
            exercise_id=exercise_id,
            sets=sets,
            reps_per_set=reps_per_set,
            weight=weight,
            order=workout.exercise_count,
        )
        exercise = build_exercise(routine_exercise, details)
        workout.add_exercise(exercise)
        for group in exercise.muscle_groups:
            workout.add_muscle_group_worked(group)
        await self.workouts.update(workout)
        return workout

    @staticmethod
    def _locate_set(workout: Workout, exercise_index: int, set_number: int) -> WorkoutSet:
        if not 0 <= exercise_index < workout.exercise_count:
            raise InvalidInputError(f"No exercise at position {exercise_index}")
        sets = workout.exercises[exercise_index].sets
        if not 1 <= set_number <= len(sets):
            raise InvalidInputError(f"No set number {set_number}")
        return sets[set_number - 1]

    async def _save_set_edit(self, workout: Workout) -> Workout:
        """Persist a set change. Edits to a finished workout also refresh its totals."""
        if workout.completed:
            aggregation.refresh_totals(workout)
        await self.workouts.update(workout)
        if workout.completed:
            await self.writes.submit("rebuild statistics", self.refresh_statistics)
        return workout

    async def complete_set(
        self,
        workout_id: str,
        exercise_index: int,
        set_number: int,
        reps: int,
        weight: float,
    ) -> Workout:
        if reps < 0:
            raise InvalidInputError.negative("reps", reps)
        if weight < 0:
            raise InvalidInputError.negative("weight", weight)
        workout = await self.workouts.get(workout_id)
        self._locate_set(workout, exercise_index, set_number).complete(reps, weight)
        return await self._save_set_edit(workout)

    async def set_completed(
        self,
        workout_id: str,
        exercise_index: int,
        set_number: int,
        completed: bool,
    ) -> Workout:
        workout = await self.workouts.get(workout_id)
        self._locate_set(workout, exercise_index, set_number).set_completed(completed)
        return await self._save_set_edit(workout)

    async def finish_workout(
        self,
        workout_id: str,
        now: datetime | None = None,
        rating: float | None = None,
        note: str | None = None,
    ) -> Workout:
        """Mark a workout completed and update routine and account statistics.

        Finishing twice recomputes the workout and rebuilds statistics from
        history instead of counting it again.
        """
        if rating is not None and not 0 <= rating <= 5:
            raise InvalidInputError(f"Rating must be between 0 and 5 (got {rating})")
        user_id = self._auth.current_user_id()
        workout = await self.workouts.get(workout_id)
        first_time = not workout.completed

        aggregation.mark_completed(workout, now or utcnow())
        if rating is not None:
            workout.rating = rating
        if note is not None:
            workout.note = note
        await self.workouts.update(workout)
        logger.info("Finished workout %s after %d minutes", workout_id, workout.duration_minutes)

        if first_time:
            if workout.routine_id:
                routine_id = workout.routine_id
                await self.writes.submit(
                    f"count completion of routine {routine_id}",
                    lambda: self.routines.increment_times_completed(routine_id),
                )
            await self.writes.submit(
                f"record workout {workout_id} in statistics",
                lambda: self.statistics.record(user_id, workout),
            )
        else:
            await self.writes.submit("rebuild statistics", self.refresh_statistics)
        return workout

    async def delete_workout(self, workout_id: str) -> None:
        await self.workouts.delete(workout_id)
        await self.writes.submit("rebuild statistics", self.refresh_statistics)

    async def get_workout(self, workout_id: str) -> Workout:
        return await self.workouts.get(workout_id)

    async def workout_summary(self, workout_id: str) -> dict:
        return aggregation.summarize(await self.workouts.get(workout_id))

    async def last_workout(self) -> Workout | None:
        workouts = await self.wait(self.workouts.list_for_user())
        return workouts[0] if workouts else None

    async def active_workout(self) -> Workout | None:
        workouts = await self.wait(self.workouts.list_for_user())
        return next((w for w in workouts if not w.completed), None)

    # --- Statistics ---

    async def get_statistics(self) -> WorkoutStatistics:
        return await self.users.get_statistics()

    async def refresh_statistics(self) -> WorkoutStatistics:
        user_id = self._auth.current_user_id()
        workouts = await self.workouts.list_for_user()
        return await self.statistics.rebuild(user_id, workouts)

    def get_auth_state(self) -> dict:
        return self._auth.to_dict()

    def restore_auth_state(self, state: dict) -> None:
        self._auth.restore(state)
