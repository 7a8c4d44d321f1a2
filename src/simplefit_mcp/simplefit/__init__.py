from simplefit_mcp.simplefit.client import SimpleFitClient
from simplefit_mcp.simplefit.config import Settings, get_settings
from simplefit_mcp.simplefit.models import (
    Difficulty, Exercise, Routine, RoutineExercise,
    Workout, WorkoutExercise, WorkoutSet, WorkoutStatistics,
)
from simplefit_mcp.simplefit.results import Resource, Status
from simplefit_mcp.simplefit.exceptions import (
    SimpleFitError, AuthenticationError, TokenExpiredError, NotFoundError,
    APIError, InvalidInputError, ResultTimeoutError,
)

__all__ = [
    "SimpleFitClient", "Settings", "get_settings",
    "Difficulty", "Exercise", "Routine", "RoutineExercise",
    "Workout", "WorkoutExercise", "WorkoutSet", "WorkoutStatistics",
    "Resource", "Status",
    "SimpleFitError", "AuthenticationError", "TokenExpiredError", "NotFoundError",
    "APIError", "InvalidInputError", "ResultTimeoutError",
]
