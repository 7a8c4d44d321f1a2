import asyncio
from datetime import timedelta

import pytest

from simplefit_mcp.simplefit import aggregation
from simplefit_mcp.simplefit.exceptions import InvalidInputError, NotFoundError, ResultTimeoutError
from simplefit_mcp.simplefit.models import Routine, RoutineExercise
from simplefit_mcp.simplefit.statistics import recompute
from tests.fakes import USER_ID


async def _saved_push_day(client, push_day) -> str:
    return await client.routines.save(push_day)


@pytest.mark.asyncio
async def test_push_day_session(client, store, push_day, start):
    routine_id = await _saved_push_day(client, push_day)

    workout = await client.start_workout(routine_id, now=start)
    assert workout.exercises[0].exercise_name == "Bench Press"
    assert workout.muscle_groups_worked == ["chest", "triceps"]

    for set_number in (1, 2, 3):
        await client.complete_set(workout.id, 0, set_number, reps=8, weight=60)
    done = await client.finish_workout(workout.id, now=start + timedelta(minutes=55), rating=4)

    assert done.completed
    assert (done.total_volume, done.total_reps, done.duration_minutes) == (1440, 24, 55)
    assert aggregation.completion_percentage(done) == 100

    stats = await client.get_statistics()
    assert (stats.total_workouts, stats.total_minutes, stats.total_sets) == (1, 55, 3)
    assert stats.total_weight == 1440
    assert (await client.routines.get(routine_id)).times_completed == 1
    assert await client.users.workout_history() == [workout.id]
    assert client.writes.pending == []


@pytest.mark.asyncio
async def test_start_twice_gives_independent_sessions(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)

    first = await client.start_workout(routine_id, now=start)
    second = await client.start_workout(routine_id, now=start)
    await client.complete_set(first.id, 0, 1, reps=8, weight=60)

    assert first.id != second.id
    assert not (await client.get_workout(second.id)).exercises[0].sets[0].completed


@pytest.mark.asyncio
async def test_next_session_prefills_last_weights(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    first = await client.start_workout(routine_id, now=start)
    await client.complete_set(first.id, 0, 1, reps=8, weight=65)
    await client.finish_workout(first.id, now=start + timedelta(minutes=30))

    second = await client.start_workout(routine_id, now=start + timedelta(days=2))

    assert [s.weight for s in second.exercises[0].sets] == [65, 60, 60]


@pytest.mark.asyncio
async def test_uncomplete_persists(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)
    await client.complete_set(workout.id, 0, 2, reps=6, weight=60)

    updated = await client.set_completed(workout.id, 0, 2, False)

    s = updated.exercises[0].sets[1]
    assert (s.completed, s.completed_timestamp, s.reps) == (False, 0, 6)
    assert (await client.get_workout(workout.id)).exercises[0].sets[1].completed_timestamp == 0


@pytest.mark.asyncio
async def test_set_addressing_is_validated(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)

    with pytest.raises(InvalidInputError):
        await client.complete_set(workout.id, 3, 1, reps=8, weight=60)
    with pytest.raises(InvalidInputError):
        await client.complete_set(workout.id, 0, 4, reps=8, weight=60)
    with pytest.raises(InvalidInputError):
        await client.complete_set(workout.id, 0, 1, reps=-1, weight=60)
    with pytest.raises(InvalidInputError):
        await client.finish_workout(workout.id, rating=9)


@pytest.mark.asyncio
async def test_refinishing_does_not_double_count(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)
    await client.complete_set(workout.id, 0, 1, reps=8, weight=60)

    await client.finish_workout(workout.id, now=start + timedelta(minutes=20))
    await client.finish_workout(workout.id, now=start + timedelta(minutes=25))

    stats = await client.get_statistics()
    assert stats.total_workouts == 1
    assert stats.total_minutes == 25
    assert (await client.routines.get(routine_id)).times_completed == 1


@pytest.mark.asyncio
async def test_statistics_failure_keeps_finished_workout(client, store, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)
    store.fail("increment", "users")

    done = await client.finish_workout(workout.id, now=start + timedelta(minutes=10))

    assert done.completed
    assert (await client.get_workout(workout.id)).completed
    assert len(client.writes.pending) == 1

    stats = await client.refresh_statistics()
    assert stats.total_workouts == 1


@pytest.mark.asyncio
async def test_retried_statistics_match_history(client, store, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)
    await client.complete_set(workout.id, 0, 1, reps=8, weight=60)
    store.fail("increment", "users")

    await client.finish_workout(workout.id, now=start + timedelta(minutes=30))
    assert await client.writes.retry_pending() == 0

    stats = await client.get_statistics()
    assert stats == recompute(await client.workouts.list_for_user())
    assert (stats.total_workouts, stats.total_minutes, stats.total_sets) == (1, 30, 1)


@pytest.mark.asyncio
async def test_editing_finished_workout_refreshes_totals(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    workout = await client.start_workout(routine_id, now=start)
    await client.finish_workout(workout.id, now=start + timedelta(minutes=30))

    await client.complete_set(workout.id, 0, 1, reps=8, weight=60)

    stored = await client.get_workout(workout.id)
    assert (stored.total_volume, stored.total_reps) == (480, 8)
    assert stored.duration_minutes == 30
    stats = await client.get_statistics()
    assert stats == recompute(await client.workouts.list_for_user())
    assert (stats.total_sets, stats.total_weight) == (1, 480)

    await client.set_completed(workout.id, 0, 1, False)

    assert (await client.get_workout(workout.id)).total_volume == 0
    assert (await client.get_statistics()).total_sets == 0


@pytest.mark.asyncio
async def test_delete_rebuilds_statistics(client, push_day, start):
    routine_id = await _saved_push_day(client, push_day)
    kept = await client.start_workout(routine_id, now=start)
    dropped = await client.start_workout(routine_id, now=start + timedelta(hours=3))
    await client.finish_workout(kept.id, now=start + timedelta(minutes=40))
    await client.finish_workout(dropped.id, now=start + timedelta(hours=3, minutes=15))

    await client.delete_workout(dropped.id)

    stats = await client.get_statistics()
    assert stats == recompute(await client.workouts.list_for_user())
    assert (stats.total_workouts, stats.total_minutes) == (1, 40)
    assert await client.users.workout_history() == [kept.id]
    with pytest.raises(NotFoundError):
        await client.get_workout(dropped.id)


@pytest.mark.asyncio
async def test_active_and_last_workout(client, push_day, start):
    assert await client.last_workout() is None
    routine_id = await _saved_push_day(client, push_day)
    finished = await client.start_workout(routine_id, now=start)
    await client.finish_workout(finished.id, now=start + timedelta(minutes=5))
    open_session = await client.start_workout(routine_id, now=start + timedelta(days=1))

    assert (await client.active_workout()).id == open_session.id
    assert (await client.last_workout()).id == open_session.id


@pytest.mark.asyncio
async def test_bounded_wait_times_out(client):
    with pytest.raises(ResultTimeoutError):
        await client.wait(asyncio.sleep(5))


@pytest.mark.asyncio
async def test_ad_hoc_workout(client, start):
    workout = await client.start_empty_workout(now=start)
    workout = await client.add_exercise(workout.id, "curl", sets=2, reps_per_set=12, weight=10)

    assert workout.exercises[0].exercise_name == "Dumbbell Curl"
    assert [s.target_reps for s in workout.exercises[0].sets] == [12, 12]
    assert workout.muscle_groups_worked == ["biceps"]
    assert workout.routine_id is None


@pytest.mark.asyncio
async def test_create_and_copy_routine(client):
    routine = await client.create_routine(Routine(name="Arms", exercises=[
        RoutineExercise(exercise_id="curl", sets=3, reps_per_set=12),
        RoutineExercise(exercise_id="bench", sets=3, reps_per_set=8, order=1),
    ]))
    assert routine.all_muscle_groups == ["biceps", "chest", "triceps"]

    copy = await client.copy_routine(routine.id)
    assert copy.id != routine.id
    assert copy.name == "Arms (Copy)"
    assert copy.user_id == USER_ID


@pytest.mark.asyncio
async def test_auth_state_restores_in_place(client):
    state = client.get_auth_state()
    client.logout()
    assert not client.is_authenticated

    client.restore_auth_state(state)
    assert client.user_id == USER_ID
    assert len(await client.routines.list_for_user()) == 0
