"""Persistence for routines, workouts, users and the exercise catalog."""

import logging
from datetime import datetime

from simplefit_mcp.simplefit.auth import FirebaseAuth
from simplefit_mcp.simplefit.exceptions import InvalidInputError, NotFoundError
from simplefit_mcp.simplefit.models import (
    Exercise, Routine, Workout, WorkoutStatistics, utcnow,
)
from simplefit_mcp.simplefit.store import (
    EXERCISES, ROUTINES, USERS, WORKOUTS, DocumentStore, Filter,
)
from simplefit_mcp.simplefit.writes import SecondaryWriteQueue

logger = logging.getLogger(__name__)


def _to_document(model) -> dict:
    return model.model_dump(exclude={"id"})


class StoreExerciseSource:
    """Reads catalog entries from the `exercises` collection."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def fetch(self, exercise_id: str) -> Exercise | None:
        doc = await self._store.get(EXERCISES, exercise_id)
        return Exercise.model_validate(doc) if doc else None

    async def fetch_all(self) -> list[Exercise]:
        docs = await self._store.query(EXERCISES, order_by="name")
        return [Exercise.model_validate(d) for d in docs]

    async def fetch_by_muscle_group(self, muscle_group: str) -> list[Exercise]:
        docs = await self._store.query(
            EXERCISES, [Filter("muscle_groups", "array-contains", muscle_group)], order_by="name",
        )
        return [Exercise.model_validate(d) for d in docs]

    async def fetch_by_equipment(self, equipment: str) -> list[Exercise]:
        docs = await self._store.query(
            EXERCISES, [Filter("equipment", "==", equipment)], order_by="name",
        )
        return [Exercise.model_validate(d) for d in docs]


class UserRepository:
    """The `users` collection: history list, favorites and the stats rollup."""

    def __init__(self, store: DocumentStore, auth: FirebaseAuth):
        self._store = store
        self._auth = auth

    async def get_profile(self, user_id: str) -> dict:
        doc = await self._store.get(USERS, user_id)
        if doc is None:
            raise NotFoundError("user", user_id)
        return doc

    async def _write_fields(self, user_id: str, fields: dict) -> None:
        if await self._store.get(USERS, user_id) is None:
            await self._store.set(USERS, user_id, fields)
        else:
            await self._store.update(USERS, user_id, fields)

    async def _read_list(self, user_id: str, field: str) -> list[str]:
        doc = await self._store.get(USERS, user_id)
        return list((doc or {}).get(field) or [])

    async def workout_history(self, user_id: str | None = None) -> list[str]:
        return await self._read_list(user_id or self._auth.current_user_id(), "workout_history")

    async def add_to_history(self, user_id: str, workout_id: str) -> None:
        history = await self._read_list(user_id, "workout_history")
        if workout_id not in history:
            history.append(workout_id)
            await self._write_fields(user_id, {"workout_history": history})

    async def remove_from_history(self, user_id: str, workout_id: str) -> None:
        history = await self._read_list(user_id, "workout_history")
        if workout_id in history:
            history.remove(workout_id)
            await self._write_fields(user_id, {"workout_history": history})

    async def favorite_exercises(self) -> list[str]:
        return await self._read_list(self._auth.current_user_id(), "favorite_exercises")

    async def is_favorite(self, exercise_id: str) -> bool:
        return exercise_id in await self.favorite_exercises()

    async def toggle_favorite_exercise(self, exercise_id: str) -> bool:
        """Add or remove `exercise_id` from favorites. Returns True if it is now a favorite."""
        user_id = self._auth.current_user_id()
        favorites = await self._read_list(user_id, "favorite_exercises")
        if exercise_id in favorites:
            favorites.remove(exercise_id)
            now_favorite = False
        else:
            favorites.append(exercise_id)
            now_favorite = True
        await self._write_fields(user_id, {"favorite_exercises": favorites})
        return now_favorite

    async def get_statistics(self, user_id: str | None = None) -> WorkoutStatistics:
        user_id = user_id or self._auth.current_user_id()
        doc = await self._store.get(USERS, user_id)
        return WorkoutStatistics.model_validate((doc or {}).get("stats") or {})

    async def save_statistics(self, user_id: str, stats: WorkoutStatistics) -> None:
        await self._write_fields(user_id, {"stats": stats.model_dump()})

    async def increment_statistics(self, user_id: str, amounts: dict[str, float]) -> None:
        """Add to several rollup fields in one atomic write."""
        await self._store.increment_fields(
            USERS, user_id, {f"stats.{field}": amount for field, amount in amounts.items()},
        )


class RoutineRepository:
    """The `routines` collection."""

    def __init__(self, store: DocumentStore, auth: FirebaseAuth):
        self._store = store
        self._auth = auth

    @staticmethod
    def _validate(routine: Routine) -> None:
        if not routine.name or not routine.name.strip():
            raise InvalidInputError.empty("Routine name")
        for exercise in routine.exercises:
            if not exercise.exercise_id:
                raise InvalidInputError.empty("Exercise ID")
            if exercise.sets < 0:
                raise InvalidInputError.negative("sets", exercise.sets)
            if exercise.reps_per_set < 0:
                raise InvalidInputError.negative("reps_per_set", exercise.reps_per_set)
            if exercise.weight < 0:
                raise InvalidInputError.negative("weight", exercise.weight)

    async def list_for_user(self) -> list[Routine]:
        user_id = self._auth.current_user_id()
        docs = await self._store.query(
            ROUTINES, [Filter("user_id", "==", user_id)], order_by="created_at", descending=True,
        )
        return [Routine.model_validate(d) for d in docs]

    async def by_muscle_group(self, muscle_group_id: str) -> list[Routine]:
        return [
            r for r in await self.list_for_user()
            if any(e.muscle_group_id == muscle_group_id for e in r.exercises)
        ]

    async def by_difficulty(self, difficulty: str) -> list[Routine]:
        return [
            r for r in await self.list_for_user()
            if r.difficulty is not None and r.difficulty.value == difficulty.lower()
        ]

    async def get(self, routine_id: str) -> Routine:
        if not routine_id:
            raise InvalidInputError.empty("Routine ID")
        doc = await self._store.get(ROUTINES, routine_id)
        if doc is None:
            raise NotFoundError("routine", routine_id)
        return Routine.model_validate(doc)

    async def save(self, routine: Routine) -> str:
        """Create or overwrite a routine owned by the current user. Returns its id."""
        user_id = self._auth.current_user_id()
        self._validate(routine)
        routine.user_id = user_id
        now = utcnow()
        if routine.created_at is None:
            routine.created_at = now
        routine.updated_at = now

        if routine.id:
            await self._store.set(ROUTINES, routine.id, _to_document(routine))
        else:
            routine.id = await self._store.add(ROUTINES, _to_document(routine))
        logger.info("Saved routine %s", routine.id)
        return routine.id

    async def update(self, routine: Routine) -> None:
        if not routine.id:
            raise InvalidInputError.empty("Routine ID")
        self._validate(routine)
        routine.updated_at = utcnow()
        await self._store.set(ROUTINES, routine.id, _to_document(routine))

    async def delete(self, routine_id: str) -> None:
        if not routine_id:
            raise InvalidInputError.empty("Routine ID")
        await self._store.delete(ROUTINES, routine_id)

    async def increment_times_completed(self, routine_id: str) -> None:
        await self._store.increment(ROUTINES, routine_id, "times_completed", 1)


class WorkoutRepository:
    """The `workouts` collection.

    Writes to the owner's history list happen after the workout write, through
    a SecondaryWriteQueue, so their failure never undoes the workout write.
    """

    def __init__(
        self,
        store: DocumentStore,
        auth: FirebaseAuth,
        users: UserRepository,
        writes: SecondaryWriteQueue,
    ):
        self._store = store
        self._auth = auth
        self._users = users
        self._writes = writes

    async def create(self, workout: Workout) -> str:
        user_id = self._auth.current_user_id()
        workout.user_id = user_id
        if workout.created_at is None:
            workout.created_at = utcnow()

        workout.id = await self._store.add(WORKOUTS, _to_document(workout))
        workout_id = workout.id
        logger.info("Created workout %s", workout_id)

        await self._writes.submit(
            f"add workout {workout_id} to history",
            lambda: self._users.add_to_history(user_id, workout_id),
        )
        return workout_id

    async def get(self, workout_id: str) -> Workout:
        if not workout_id:
            raise InvalidInputError.empty("Workout ID")
        doc = await self._store.get(WORKOUTS, workout_id)
        if doc is None:
            raise NotFoundError("workout", workout_id)
        return Workout.model_validate(doc)

    async def update(self, workout: Workout) -> None:
        if not workout.id:
            raise InvalidInputError.empty("Workout ID")
        await self._store.set(WORKOUTS, workout.id, _to_document(workout))

    async def list_for_user(self) -> list[Workout]:
        user_id = self._auth.current_user_id()
        docs = await self._store.query(
            WORKOUTS, [Filter("user_id", "==", user_id)], order_by="date", descending=True,
        )
        return [Workout.model_validate(d) for d in docs]

    async def list_in_date_range(self, start: datetime, end: datetime) -> list[Workout]:
        user_id = self._auth.current_user_id()
        docs = await self._store.query(
            WORKOUTS,
            [
                Filter("user_id", "==", user_id),
                Filter("date", ">=", start),
                Filter("date", "<=", end),
            ],
            order_by="date",
            descending=True,
        )
        return [Workout.model_validate(d) for d in docs]

    async def last_for_routine(self, routine_id: str) -> Workout | None:
        user_id = self._auth.current_user_id()
        docs = await self._store.query(
            WORKOUTS,
            [Filter("user_id", "==", user_id), Filter("routine_id", "==", routine_id)],
            order_by="date",
            descending=True,
            limit=1,
        )
        return Workout.model_validate(docs[0]) if docs else None

    async def delete(self, workout_id: str) -> None:
        user_id = self._auth.current_user_id()
        if not workout_id:
            raise InvalidInputError.empty("Workout ID")
        await self._store.delete(WORKOUTS, workout_id)
        logger.info("Deleted workout %s", workout_id)

        await self._writes.submit(
            f"remove workout {workout_id} from history",
            lambda: self._users.remove_from_history(user_id, workout_id),
        )
