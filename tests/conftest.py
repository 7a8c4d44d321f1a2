from datetime import datetime, timezone

import pytest

from simplefit_mcp.simplefit.auth import FirebaseAuth
from simplefit_mcp.simplefit.client import SimpleFitClient
from simplefit_mcp.simplefit.config import Settings
from simplefit_mcp.simplefit.models import Exercise, Routine, RoutineExercise
from tests.fakes import USER_ID, FakeDocumentStore

EXERCISES = {
    "bench": {
        "name": "Bench Press",
        "muscle_groups": ["chest", "triceps"],
        "equipment": "barbell",
        "difficulty": "intermediate",
        "compound": True,
    },
    "pushup": {
        "name": "Push-Up",
        "muscle_groups": ["chest"],
        "equipment": "bodyweight",
        "difficulty": "Beginner",
        "compound": True,
    },
    "curl": {
        "name": "Dumbbell Curl",
        "muscle_groups": ["biceps"],
        "equipment": "dumbbell",
        "difficulty": "beginner",
    },
}


@pytest.fixture
def start() -> datetime:
    return datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def auth() -> FirebaseAuth:
    auth = FirebaseAuth(api_key="test-key")
    auth.id_token = "token"
    auth.refresh_token = "refresh"
    auth.user_id = USER_ID
    return auth


@pytest.fixture
def store() -> FakeDocumentStore:
    store = FakeDocumentStore()
    store.seed("exercises", EXERCISES)
    return store


@pytest.fixture
def settings() -> Settings:
    return Settings(project_id="test-project", api_key="test-key", result_timeout=1)


@pytest.fixture
def client(settings, auth, store) -> SimpleFitClient:
    return SimpleFitClient(settings=settings, auth=auth, store=store)


@pytest.fixture
def catalog_exercises() -> list[Exercise]:
    return [Exercise(id=key, **value) for key, value in EXERCISES.items()]


@pytest.fixture
def push_day() -> Routine:
    return Routine(
        name="Push Day",
        exercises=[RoutineExercise(exercise_id="bench", sets=3, reps_per_set=8, weight=60)],
    )
