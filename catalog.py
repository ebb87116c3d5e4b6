from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

DAYS_PER_WEEK = 7
OR_SEPARATOR = " OR "
VARIANT_MARKER = "*"


class ProgramDataError(ValueError):
    """Program or exercise data is missing or malformed."""


class _Model(BaseModel):
    # program.json / exercises.json use camelCase keys
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Category(_Model):
    id: str
    name: str


class ExerciseOverride(_Model):
    sets: Optional[int] = None
    reps: Optional[str] = None
    rpe: Optional[str] = None
    notes: Optional[str] = None


class BaseExercise(_Model):
    id: str
    name: str
    category: Optional[str] = None
    video_url: Optional[str] = Field(None, alias="videoUrl")
    default_sets: Optional[int] = Field(None, alias="defaultSets")
    default_reps: Optional[str] = Field(None, alias="defaultReps")
    default_rpe: Optional[str] = Field(None, alias="defaultRpe")
    default_notes: Optional[str] = Field(None, alias="defaultNotes")
    # keyed by workout token, e.g. "Recovery" or "Hybrid B*"
    variations: Dict[str, ExerciseOverride] = Field(default_factory=dict)


class ExerciseOccurrence(ExerciseOverride):
    """One placement of an exercise inside a workout section.

    Only `id` is required. `name`, `category` and `videoUrl` are used solely when the
    id has no entry in the exercise catalog.
    """
    id: str
    name: Optional[str] = None
    category: Optional[str] = None
    video_url: Optional[str] = Field(None, alias="videoUrl")


class ResolvedExercise(_Model):
    id: str
    name: str
    category: Optional[str] = None
    video_url: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[str] = None
    rpe: Optional[str] = None
    notes: Optional[str] = None


class WorkoutSection(_Model):
    name: str
    exercises: List[ExerciseOccurrence] = Field(default_factory=list)


class WorkoutType(_Model):
    id: str
    name: str
    color_class: str = Field("", alias="colorClass")
    description: Optional[str] = None
    rpe_range: Optional[str] = Field(None, alias="rpeRange")
    notes: Optional[str] = None
    sections: List[WorkoutSection] = Field(default_factory=list)


class ScheduleWeek(_Model):
    id: Optional[str] = None
    days: List[str]

    @field_validator("days")
    @classmethod
    def _seven_days(cls, days: List[str]) -> List[str]:
        if len(days) != DAYS_PER_WEEK:
            raise ValueError(f"a week needs exactly {DAYS_PER_WEEK} days, got {len(days)}")
        return days


class ProgramSchedule(_Model):
    length: int
    unit: str = "weeks"
    weeks: List[ScheduleWeek] = Field(default_factory=list)


class Program(_Model):
    id: str
    name: str
    version: str = "1.0"
    description: str = ""
    workout_types: Dict[str, WorkoutType] = Field(default_factory=dict, alias="workoutTypes")
    schedule: Optional[ProgramSchedule] = None

    @model_validator(mode="after")
    def _plain_tokens_resolve(self) -> "Program":
        if self.schedule is None:
            return self
        for w, week in enumerate(self.schedule.weeks):
            for token in week.days:
                if OR_SEPARATOR in token or VARIANT_MARKER in token:
                    continue
                if token.strip() not in self.workout_types:
                    raise ValueError(f"week {w + 1}: unknown workout type {token!r}")
        return self


class ExerciseCatalog(_Model):
    categories: Dict[str, Category] = Field(default_factory=dict)
    exercises: Dict[str, BaseExercise] = Field(default_factory=dict)


class ProgramConfig(_Model):
    """The program definition together with the exercise catalog it references."""
    program: Program
    catalog: ExerciseCatalog = Field(default_factory=ExerciseCatalog)

    @classmethod
    def from_dicts(cls, program: dict, exercises: dict | None = None) -> "ProgramConfig":
        try:
            return cls(
                program=Program.model_validate(program),
                catalog=ExerciseCatalog.model_validate(exercises or {}),
            )
        except ValidationError as e:
            raise ProgramDataError(str(e)) from e


def _read_json(path: Path) -> dict:
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as e:
        raise ProgramDataError(f"missing program file: {path}") from e
    except json.JSONDecodeError as e:
        raise ProgramDataError(f"{path.name}: invalid JSON ({e})") from e


def load_program_config(program_dir) -> ProgramConfig:
    """Load `program.json` and `exercises.json` from one program directory."""
    program_dir = Path(program_dir)
    program = _read_json(program_dir / "program.json")
    exercises_path = program_dir / "exercises.json"
    exercises = _read_json(exercises_path) if exercises_path.exists() else {}
    return ProgramConfig.from_dicts(program, exercises)
