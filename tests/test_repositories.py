from datetime import timedelta

import pytest

from simplefit_mcp.simplefit.auth import FirebaseAuth
from simplefit_mcp.simplefit.exceptions import (
    APIError, AuthenticationError, InvalidInputError, NotFoundError,
)
from simplefit_mcp.simplefit.models import Routine, RoutineExercise, Workout
from simplefit_mcp.simplefit.repositories import (
    RoutineRepository, StoreExerciseSource, UserRepository, WorkoutRepository,
)
from simplefit_mcp.simplefit.writes import SecondaryWriteQueue
from tests.fakes import USER_ID


@pytest.fixture
def users(store, auth) -> UserRepository:
    return UserRepository(store, auth)


@pytest.fixture
def writes() -> SecondaryWriteQueue:
    return SecondaryWriteQueue(max_attempts=2)


@pytest.fixture
def routines(store, auth) -> RoutineRepository:
    return RoutineRepository(store, auth)


@pytest.fixture
def workouts(store, auth, users, writes) -> WorkoutRepository:
    return WorkoutRepository(store, auth, users, writes)


# =============================================================================
# Routines
# =============================================================================


@pytest.mark.asyncio
async def test_save_and_get_routine(routines, push_day):
    routine_id = await routines.save(push_day)

    loaded = await routines.get(routine_id)
    assert loaded.id == routine_id
    assert loaded.user_id == USER_ID
    assert loaded.exercises[0].reps_per_set == 8
    assert loaded.created_at is not None


@pytest.mark.asyncio
async def test_routine_lookups_fail_explicitly(routines):
    with pytest.raises(NotFoundError) as exc:
        await routines.get("missing")
    assert exc.value.message == "Routine not found"

    with pytest.raises(InvalidInputError):
        await routines.get("")
    with pytest.raises(InvalidInputError):
        await routines.update(Routine(name="no id"))


@pytest.mark.asyncio
@pytest.mark.parametrize("routine", [
    Routine(name="   "),
    Routine(name="r", exercises=[RoutineExercise(exercise_id="")]),
    Routine(name="r", exercises=[RoutineExercise(exercise_id="a", sets=-1)]),
    Routine(name="r", exercises=[RoutineExercise(exercise_id="a", weight=-5)]),
])
async def test_invalid_routines_are_rejected(routines, store, routine):
    with pytest.raises(InvalidInputError):
        await routines.save(routine)
    assert store.calls[("add", "routines")] == 0


@pytest.mark.asyncio
async def test_routine_queries(routines):
    await routines.save(Routine(name="A", difficulty="beginner", exercises=[
        RoutineExercise(exercise_id="x", muscle_group_id="legs"),
    ]))
    await routines.save(Routine(name="B", difficulty="advanced"))

    assert [r.name for r in await routines.by_difficulty("Beginner")] == ["A"]
    assert [r.name for r in await routines.by_muscle_group("legs")] == ["A"]
    assert len(await routines.list_for_user()) == 2


@pytest.mark.asyncio
async def test_increment_times_completed(routines, push_day):
    routine_id = await routines.save(push_day)
    await routines.increment_times_completed(routine_id)
    await routines.increment_times_completed(routine_id)

    assert (await routines.get(routine_id)).times_completed == 2


@pytest.mark.asyncio
async def test_user_scoped_operations_need_identity(store, users, writes):
    anonymous = FirebaseAuth()
    with pytest.raises(AuthenticationError) as exc:
        await RoutineRepository(store, anonymous).list_for_user()
    assert exc.value.message == "User not logged in"

    with pytest.raises(AuthenticationError):
        await WorkoutRepository(store, anonymous, users, writes).create(Workout())


# =============================================================================
# Workouts and history
# =============================================================================


@pytest.mark.asyncio
async def test_create_workout_adds_to_history(workouts, users, store):
    workout_id = await workouts.create(Workout())

    assert await users.workout_history() == [workout_id]
    assert store.raw("workouts", workout_id)["user_id"] == USER_ID


@pytest.mark.asyncio
async def test_history_failure_keeps_workout(workouts, users, store, writes):
    store.fail("set", "users")

    workout_id = await workouts.create(Workout())

    assert store.raw("workouts", workout_id) is not None
    assert [w.name for w in writes.pending] == [f"add workout {workout_id} to history"]
    assert await users.workout_history() == []

    assert await writes.retry_pending() == 0
    assert await users.workout_history() == [workout_id]


@pytest.mark.asyncio
async def test_delete_workout_removes_from_history(workouts, users, store):
    workout_id = await workouts.create(Workout())
    await workouts.delete(workout_id)

    assert store.raw("workouts", workout_id) is None
    assert await users.workout_history() == []
    with pytest.raises(NotFoundError):
        await workouts.get(workout_id)


@pytest.mark.asyncio
async def test_workout_queries(workouts, start):
    old = Workout(routine_id="r1", date=start)
    new = Workout(routine_id="r1", date=start + timedelta(days=2))
    other = Workout(routine_id="r2", date=start + timedelta(days=5))
    for w in (old, new, other):
        await workouts.create(w)

    assert [w.id for w in await workouts.list_for_user()] == [other.id, new.id, old.id]
    assert (await workouts.last_for_routine("r1")).id == new.id
    assert await workouts.last_for_routine("r3") is None
    in_range = await workouts.list_in_date_range(start, start + timedelta(days=3))
    assert [w.id for w in in_range] == [new.id, old.id]


# =============================================================================
# Users
# =============================================================================


@pytest.mark.asyncio
async def test_toggle_favorite(users):
    assert await users.toggle_favorite_exercise("bench") is True
    assert await users.is_favorite("bench")
    assert await users.toggle_favorite_exercise("bench") is False
    assert await users.favorite_exercises() == []


@pytest.mark.asyncio
async def test_missing_profile(users):
    with pytest.raises(NotFoundError) as exc:
        await users.get_profile("ghost")
    assert exc.value.message == "User not found"


@pytest.mark.asyncio
async def test_exercise_source_queries(store):
    source = StoreExerciseSource(store)

    assert (await source.fetch("bench")).name == "Bench Press"
    assert await source.fetch("nope") is None
    assert [e.id for e in await source.fetch_by_muscle_group("chest")] == ["bench", "pushup"]
    assert [e.id for e in await source.fetch_by_equipment("dumbbell")] == ["curl"]


# =============================================================================
# Secondary write queue
# =============================================================================


@pytest.mark.asyncio
async def test_queue_abandons_after_max_attempts():
    queue = SecondaryWriteQueue(max_attempts=2)
    calls = []

    async def always_fails():
        calls.append(1)
        raise APIError("down")

    assert await queue.submit("flaky", always_fails) is False
    assert await queue.retry_pending() == 0

    assert len(calls) == 2
    assert queue.pending == []
    assert [w.name for w in queue.abandoned] == ["flaky"]
    assert queue.abandoned[0].last_error == "down"


@pytest.mark.asyncio
async def test_queue_does_not_hide_programming_errors():
    queue = SecondaryWriteQueue()

    async def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        await queue.submit("broken", broken)
