import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from catalog import ProgramConfig
from logic import ExpandedWorkout, Grid, ScheduledDay, expand_workout

# Version of the completion-key format below. Bump when section or exercise ids change shape;
# the store drops schedules saved under another version.
KEY_VERSION = 1


def day_id(week: int, day: int) -> str:
    return f"week{week}-day{day}"


@dataclass(frozen=True)
class ExerciseKey:
    week: int
    day: int
    section: str
    exercise_id: str

    def __str__(self) -> str:
        return f"{day_id(self.week, self.day)}-{self.section.lower()}-{self.exercise_id}"


def exercise_keys(week: int, day: int, expanded: Optional[ExpandedWorkout]) -> List[str]:
    """Every completion key for one day, in display order."""
    if expanded is None:
        return []
    return [
        str(ExerciseKey(week, day, section.key, ex.id))
        for section in expanded.sections
        for ex in section.exercises
    ]


@dataclass(frozen=True)
class DayCompletion:
    total: int
    completed: int
    percentage: Optional[float]  # None when the day has nothing to track
    is_complete: bool
    is_in_progress: bool


def day_completion_state(day: ScheduledDay, config: ProgramConfig) -> DayCompletion:
    expanded = expand_workout(day.workout, config)
    total = expanded.total_exercises if expanded else 0
    completed = sum(1 for v in day.completed.values() if v is True)
    is_complete = total > 0 and completed >= total
    return DayCompletion(
        total=total,
        completed=completed,
        percentage=(completed / total * 100) if total > 0 else None,
        is_complete=is_complete,
        is_in_progress=total > 0 and completed > 0 and not is_complete,
    )


@dataclass(frozen=True)
class ProgramProgress:
    percentage: int
    completed: int
    total: int


def _progress(days: Iterable[ScheduledDay], config: ProgramConfig) -> ProgramProgress:
    days = list(days)
    done = sum(1 for d in days if day_completion_state(d, config).is_complete)
    # halves round up
    pct = math.floor(done / len(days) * 100 + 0.5) if days else 0
    return ProgramProgress(percentage=pct, completed=done, total=len(days))


def program_progress(grid: Grid, config: ProgramConfig) -> ProgramProgress:
    return _progress((d for week in grid for d in week), config)


def week_summaries(grid: Grid, config: ProgramConfig) -> List[ProgramProgress]:
    return [_progress(week, config) for week in grid]


@dataclass(frozen=True)
class WorkoutDetails:
    day: ScheduledDay
    details: ExpandedWorkout
    week_index: int
    day_index: int

    @property
    def keys(self) -> List[str]:
        return exercise_keys(self.week_index, self.day_index, self.details)


def day_at(grid: Grid, week: int, day: int) -> ScheduledDay:
    if not (0 <= week < len(grid)) or not (0 <= day < len(grid[week])):
        raise IndexError(f"no scheduled day at week {week}, day {day}")
    return grid[week][day]


def workout_details(grid: Grid, week: int, day: int, config: ProgramConfig) -> Optional[WorkoutDetails]:
    try:
        scheduled = day_at(grid, week, day)
    except IndexError:
        return None
    expanded = expand_workout(scheduled.workout, config)
    if expanded is None:
        return None
    return WorkoutDetails(scheduled, expanded, week, day)


# ------------ mutations: each replaces exactly one day ------------
def toggle_exercise(grid: Grid, week: int, day: int, key: str) -> ScheduledDay:
    old = day_at(grid, week, day)
    grid[week][day] = replace(old, completed={**old.completed, key: not old.completed.get(key, False)})
    return grid[week][day]


def batch_set_completion(grid: Grid, week: int, day: int, keys: Iterable[str], value: bool) -> ScheduledDay:
    old = day_at(grid, week, day)
    completed = dict(old.completed)
    for k in keys:
        completed[k] = value
    grid[week][day] = replace(old, completed=completed)
    return grid[week][day]


def set_notes(grid: Grid, week: int, day: int, text: Optional[str]) -> ScheduledDay:
    old = day_at(grid, week, day)
    grid[week][day] = replace(old, user_notes=text)
    return grid[week][day]
