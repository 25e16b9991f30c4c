import json
import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from coach_core.errors import ToolExecutionError
from coach_core.models.tool_models import ToolCall, ToolCallResult
from coach_core.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


def parse_workout_date(value: str, today: date) -> date:
    """Accepts 'today', 'tomorrow' or an ISO date (YYYY-MM-DD)."""
    lowered = value.strip().lower()
    if lowered == "today":
        return today
    if lowered == "tomorrow":
        return today + timedelta(days=1)
    try:
        return datetime.strptime(lowered, "%Y-%m-%d").date()
    except ValueError:
        raise ToolExecutionError(f"Invalid date '{value}'. Use 'today', 'tomorrow' or YYYY-MM-DD.") from None


class WorkoutToolExecutor(ToolExecutor):
    """
    Plans, updates and reads structured workouts kept in an in-memory store.

    Workouts are keyed by ISO date. `workout_json` must be a JSON object; its
    `title` (or `name`) and `exercises` list are used for the summary returned
    to the model.
    """

    descriptions = {
        "plan_workout": "Planning your workout",
        "update_workout": "Updating your workout",
        "get_workout": "Looking up your workout",
    }

    def __init__(self, today_provider: Optional[Callable[[], date]] = None):
        self._today = today_provider or date.today
        self._workouts: Dict[str, Dict[str, Any]] = {}

    @property
    def supported_tool_names(self) -> List[str]:
        return list(self.descriptions)

    @property
    def workouts(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._workouts)

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        if tool_call.name == "plan_workout":
            return self._plan(tool_call, must_exist=False)
        if tool_call.name == "update_workout":
            return self._plan(tool_call, must_exist=True)
        if tool_call.name == "get_workout":
            return self._get(tool_call)
        return ToolCallResult.failure(tool_call.name, f"Unknown tool '{tool_call.name}' for workout executor.")

    def _load_workout_json(self, tool_call: ToolCall) -> Dict[str, Any]:
        raw = tool_call.parameters.get("workout_json")
        if not raw:
            raise ToolExecutionError(
                "workout_json parameter is required. Provide structured workout data as JSON."
            )
        try:
            workout = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"workout_json is not valid JSON: {e}") from e
        if not isinstance(workout, dict):
            raise ToolExecutionError("workout_json must be a JSON object.")
        return workout

    def _plan(self, tool_call: ToolCall, must_exist: bool) -> ToolCallResult:
        workout_date = parse_workout_date(tool_call.parameters.get("date", "today"), self._today())
        key = workout_date.isoformat()
        if must_exist and key not in self._workouts:
            return ToolCallResult.failure(tool_call.name, f"No workout planned for {key} to update.")

        workout = self._load_workout_json(tool_call)
        notes = tool_call.parameters.get("notes")
        if notes:
            workout["notes"] = notes
        self._workouts[key] = workout
        logger.info(f"Stored workout for {key} via '{tool_call.name}'.")

        header = "[Structured Workout Updated]" if must_exist else "[Structured Workout Planned]"
        return ToolCallResult(tool_name=tool_call.name, result=f"{header}\n{self._summarize(key, workout)}")

    def _get(self, tool_call: ToolCall) -> ToolCallResult:
        workout_date = parse_workout_date(tool_call.parameters.get("date", "today"), self._today())
        key = workout_date.isoformat()
        workout = self._workouts.get(key)
        if workout is None:
            return ToolCallResult(tool_name=tool_call.name, result=f"[No workout planned for {key}]")
        return ToolCallResult(tool_name=tool_call.name, result=f"[Workout]\n{self._summarize(key, workout)}")

    @staticmethod
    def _summarize(key: str, workout: Dict[str, Any]) -> str:
        lines = [f"• Date: {key}", f"• Workout: {workout.get('title') or workout.get('name') or 'Untitled'}"]
        exercises = workout.get("exercises")
        if isinstance(exercises, list):
            lines.append(f"• Exercises: {len(exercises)}")
        if workout.get("duration"):
            lines.append(f"• Duration: {workout['duration']}")
        if workout.get("notes"):
            lines.append(f"• Notes: {workout['notes']}")
        return "\n".join(lines)
