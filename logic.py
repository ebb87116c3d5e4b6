import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Mapping, Optional, Tuple

from catalog import (
    DAYS_PER_WEEK, OR_SEPARATOR, VARIANT_MARKER,
    BaseExercise, ExerciseOccurrence, ExerciseOverride, Program, ProgramConfig,
    ProgramDataError, ResolvedExercise, WorkoutType,
)

logger = logging.getLogger(__name__)

REST_DAY = "Off"
# only these sections count on a rest day
RECOVERY_SECTIONS = ("recovery", "rest")

CUSTOM_WORKOUT_COLOR = "bg-gray-100 hover:bg-gray-200 text-gray-900"


# ------------ day tokens ------------
@dataclass(frozen=True)
class DayToken:
    raw: str
    choices: Tuple[str, ...]
    variant: bool  # trailing "*": display only

    @property
    def base(self) -> str:
        return self.choices[0]

    @property
    def is_composite(self) -> bool:
        return len(self.choices) > 1


def parse_day_token(token: str) -> DayToken:
    choices = tuple(part.replace(VARIANT_MARKER, "").strip() for part in token.split(OR_SEPARATOR))
    return DayToken(raw=token, choices=choices, variant=VARIANT_MARKER in token)


def base_workout_name(token: str) -> str:
    """ "Recovery OR Hybrid B*" -> "Recovery" """
    base = token.split(OR_SEPARATOR)[0].replace(VARIANT_MARKER, "").strip()
    logger.debug("base workout for %r is %r", token, base)
    return base


def workout_info(token: str, program: Program) -> WorkoutType:
    """Workout type for a day token, or a placeholder for tokens the program does not define."""
    wt = program.workout_types.get(base_workout_name(token))
    if wt is not None:
        return wt
    return WorkoutType(
        id="custom", name=token, color_class=CUSTOM_WORKOUT_COLOR,
        description="Custom workout", sections=[],
    )


# ------------ exercise resolution ------------
def _variation_for(base: BaseExercise, workout: Optional[str]) -> Optional[ExerciseOverride]:
    if not workout or not base.variations:
        return None
    return base.variations.get(workout) or base.variations.get(base_workout_name(workout))


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def resolve_exercise(occurrence: ExerciseOccurrence, exercises: Mapping[str, BaseExercise],
                     workout: Optional[str] = None) -> ResolvedExercise:
    """
    Merge one occurrence with its base exercise.
    Per field: occurrence override, else the base's variation for `workout`, else the base default.
    Identity (id/name/category/video) always comes from the base record.
    """
    base = exercises.get(occurrence.id)
    if base is None:
        # unknown id: show the occurrence as-is
        return ResolvedExercise(
            id=occurrence.id,
            name=occurrence.name or occurrence.id,
            category=occurrence.category,
            video_url=occurrence.video_url,
            sets=occurrence.sets, reps=occurrence.reps,
            rpe=occurrence.rpe, notes=occurrence.notes,
        )

    var = _variation_for(base, workout) or ExerciseOverride()
    return ResolvedExercise(
        id=base.id,
        name=base.name,
        category=base.category,
        video_url=base.video_url,
        sets=_first(occurrence.sets, var.sets, base.default_sets),
        reps=_first(occurrence.reps, var.reps, base.default_reps),
        rpe=_first(occurrence.rpe, var.rpe, base.default_rpe),
        notes=_first(occurrence.notes, var.notes, base.default_notes),
    )


@dataclass(frozen=True)
class ResolvedSection:
    name: str
    exercises: Tuple[ResolvedExercise, ...]

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class ExpandedWorkout:
    workout: str
    sections: Tuple[ResolvedSection, ...]
    rpe_range: Optional[str] = None
    notes: Optional[str] = None

    @property
    def total_exercises(self) -> int:
        return sum(len(s.exercises) for s in self.sections)


def expand_workout(token: str, config: ProgramConfig) -> Optional[ExpandedWorkout]:
    """Resolved sections for a day token, or None when the token names no workout type."""
    name = base_workout_name(token)
    wt = config.program.workout_types.get(name)
    if wt is None:
        logger.debug("no workout type %r in program %s", name, config.program.id)
        return None

    sections = wt.sections
    if name == REST_DAY:
        sections = [s for s in sections if s.name.lower() in RECOVERY_SECTIONS]

    exercises = config.catalog.exercises
    return ExpandedWorkout(
        workout=name,
        sections=tuple(
            ResolvedSection(s.name, tuple(resolve_exercise(o, exercises, token) for o in s.exercises))
            for s in sections
        ),
        rpe_range=wt.rpe_range,
        notes=wt.notes,
    )


# ------------ dates & schedule ------------
def normalize_date(value) -> date:
    """Midnight-normalize: datetimes become their local calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")


def format_date_for_display(d: date) -> str:
    return d.strftime("%m/%d/%Y")


def format_date_for_input(d: date) -> str:
    return d.strftime("%Y-%m-%d")


@dataclass
class ScheduledDay:
    date: date
    workout: str
    completed: dict = field(default_factory=dict)
    user_notes: Optional[str] = None


Grid = List[List[ScheduledDay]]


def generate_schedule(start, program: Program) -> Grid:
    start = normalize_date(start)
    schedule = program.schedule
    if schedule is None or not schedule.weeks:
        raise ProgramDataError(f"program {program.id!r} has no schedule weeks")

    grid = []
    for w, week in enumerate(schedule.weeks):
        if len(week.days) != DAYS_PER_WEEK:
            raise ProgramDataError(f"week {w + 1} has {len(week.days)} days, expected {DAYS_PER_WEEK}")
        grid.append([
            ScheduledDay(date=start + timedelta(days=w * DAYS_PER_WEEK + d), workout=token)
            for d, token in enumerate(week.days)
        ])
    return grid


def program_length_weeks(program: Program) -> int:
    schedule = program.schedule
    if schedule is None:
        return 0
    unit = (schedule.unit or "").lower().rstrip("s")
    if unit == "day":
        return math.ceil(schedule.length / DAYS_PER_WEEK)
    if unit == "week" and schedule.length > 0:
        return schedule.length
    return len(schedule.weeks)


def calculate_end_date(start, weeks: int) -> date:
    return normalize_date(start) + timedelta(days=weeks * DAYS_PER_WEEK - 1)


def program_end_date(start, program: Program) -> date:
    return calculate_end_date(start, program_length_weeks(program))
