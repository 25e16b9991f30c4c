from .workout_executor import WorkoutToolExecutor

__all__ = ["WorkoutToolExecutor"]
