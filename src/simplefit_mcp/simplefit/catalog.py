"""Read-through cache over the exercise catalog."""

import asyncio
import logging
from typing import Protocol

from simplefit_mcp.simplefit.exceptions import NotFoundError
from simplefit_mcp.simplefit.models import Exercise

logger = logging.getLogger(__name__)


class ExerciseSource(Protocol):
    """Where the catalog fetches exercises it does not hold yet."""

    async def fetch(self, exercise_id: str) -> Exercise | None:
        ...

    async def fetch_all(self) -> list[Exercise]:
        ...

    async def fetch_by_muscle_group(self, muscle_group: str) -> list[Exercise]:
        ...

    async def fetch_by_equipment(self, equipment: str) -> list[Exercise]:
        ...


def _by_name(exercises) -> list[Exercise]:
    return sorted(exercises, key=lambda e: e.name.lower())


def _is_wildcard(value: str | None) -> bool:
    return not value or value == "all"


class ExerciseCatalog:
    """Caches exercises by id and remembers whether the whole catalog is resident.

    Each id is fetched at most once while it is resident or in flight:
    concurrent `get` calls for the same id share one pending task.
    """

    def __init__(self, source: ExerciseSource):
        self._source = source
        self._entries: dict[str, Exercise] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._full_load: asyncio.Task | None = None
        self._fully_loaded = False
        # bumped by clear_cache; loads started before a clear do not write back
        self._generation = 0

    @property
    def fully_loaded(self) -> bool:
        return self._fully_loaded

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, exercise_id: str) -> bool:
        return exercise_id in self._entries

    def peek(self, exercise_id: str) -> Exercise | None:
        return self._entries.get(exercise_id)

    def _store(self, exercises: list[Exercise]) -> list[Exercise]:
        for exercise in exercises:
            self._entries[exercise.id] = exercise
        return exercises

    async def _fetch_one(self, exercise_id: str, generation: int) -> Exercise:
        try:
            exercise = await self._source.fetch(exercise_id)
            if exercise is None:
                raise NotFoundError("exercise", exercise_id)
            if generation == self._generation:
                self._entries[exercise_id] = exercise
            return exercise
        finally:
            if generation == self._generation:
                self._in_flight.pop(exercise_id, None)

    async def get(self, exercise_id: str) -> Exercise:
        cached = self._entries.get(exercise_id)
        if cached is not None:
            logger.debug("Catalog hit for %s", exercise_id)
            return cached

        task = self._in_flight.get(exercise_id)
        if task is None:
            logger.debug("Catalog miss for %s, fetching", exercise_id)
            task = asyncio.ensure_future(self._fetch_one(exercise_id, self._generation))
            self._in_flight[exercise_id] = task
        # shield: a caller that gives up must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _load_all(self, generation: int) -> list[Exercise]:
        try:
            exercises = await self._source.fetch_all()
            if generation != self._generation:
                logger.debug("Discarding catalog load started before a cache clear")
                return exercises
            self._store(exercises)
            self._fully_loaded = True
            logger.info("Loaded %d exercises into catalog", len(exercises))
            return exercises
        finally:
            if generation == self._generation:
                self._full_load = None

    async def get_all(self) -> list[Exercise]:
        if self._fully_loaded:
            return _by_name(self._entries.values())
        if self._full_load is None:
            self._full_load = asyncio.ensure_future(self._load_all(self._generation))
        return _by_name(await asyncio.shield(self._full_load))

    async def get_by_ids(self, exercise_ids: list[str]) -> list[Exercise]:
        """Resolve ids in input order, fetching only misses. Unknown ids are skipped."""
        if not exercise_ids:
            return []
        results = await asyncio.gather(
            *(self.get(exercise_id) for exercise_id in exercise_ids),
            return_exceptions=True,
        )
        exercises = []
        for exercise_id, result in zip(exercise_ids, results):
            if isinstance(result, NotFoundError):
                logger.warning("Exercise %s not found in catalog", exercise_id)
                continue
            if isinstance(result, BaseException):
                raise result
            exercises.append(result)
        return exercises

    async def search(self, query: str) -> list[Exercise]:
        """Case-insensitive substring match on exercise name."""
        needle = query.strip().lower()
        exercises = await self.get_all()
        return [e for e in exercises if needle in e.name.lower()]

    async def by_muscle_group(self, muscle_group: str) -> list[Exercise]:
        if self._fully_loaded:
            return [e for e in _by_name(self._entries.values()) if muscle_group in e.muscle_groups]
        return _by_name(self._store(await self._source.fetch_by_muscle_group(muscle_group)))

    async def by_equipment(self, equipment: str) -> list[Exercise]:
        if self._fully_loaded:
            return [e for e in _by_name(self._entries.values()) if e.equipment == equipment]
        return _by_name(self._store(await self._source.fetch_by_equipment(equipment)))

    async def filter(
        self,
        muscle_groups: list[str] | None = None,
        equipment: str | None = None,
        difficulty: str | None = None,
        compound_only: bool = False,
    ) -> list[Exercise]:
        """Combine filters. An empty value or "all" disables that filter."""
        matches = []
        for exercise in await self.get_all():
            if not _is_wildcard(equipment) and exercise.equipment != equipment:
                continue
            if not _is_wildcard(difficulty) and (
                exercise.difficulty is None or exercise.difficulty.value != difficulty.lower()
            ):
                continue
            if compound_only and not exercise.compound:
                continue
            if muscle_groups and not set(muscle_groups) & set(exercise.muscle_groups):
                continue
            matches.append(exercise)
        return matches

    async def equipment_types(self) -> list[str]:
        return sorted({e.equipment for e in await self.get_all() if e.equipment})

    def clear_cache(self) -> None:
        self._generation += 1
        self._entries.clear()
        self._in_flight.clear()
        self._full_load = None
        self._fully_loaded = False
        logger.debug("Catalog cache cleared")
