import copy
import json
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from catalog import ProgramConfig
from store import ProgressStore
from tracker import WorkoutTracker

START = date(2024, 1, 15)  # a Monday

PROGRAM = {
    "id": "test-program",
    "name": "Test Program",
    "version": "1.0",
    "description": "Two weeks of lifting and recovery",
    "workoutTypes": {
        "Lift": {
            "id": "lift", "name": "Lift", "colorClass": "bg-red-600", "rpeRange": "70-80%",
            "notes": "Heavy day",
            "sections": [
                {"name": "Warmup", "exercises": [{"id": "band-pulls"}, {"id": "jumps", "reps": "3x5"}]},
                {"name": "Lifting", "exercises": [{"id": "squat", "sets": 5, "rpe": "8"}]},
            ],
        },
        "Recovery": {
            "id": "recovery", "name": "Recovery", "colorClass": "bg-sky-100",
            "sections": [{"name": "Recovery", "exercises": [{"id": "stretch"}]}],
        },
        "Off": {
            "id": "off", "name": "Rest", "colorClass": "bg-slate-50",
            "sections": [
                {"name": "Warmup", "exercises": [{"id": "band-pulls"}]},
                {"name": "Recovery", "exercises": [{"id": "walk"}, {"id": "stretch"}]},
            ],
        },
        "Blank": {"id": "blank", "name": "Blank", "colorClass": "", "sections": []},
    },
    "schedule": {
        "length": 2,
        "unit": "weeks",
        "weeks": [
            {"id": "w1", "days": ["Lift", "Recovery", "Lift", "Off", "Lift OR Recovery*", "Recovery", "Off"]},
            {"id": "w2", "days": ["Lift", "Recovery", "Blank", "Off", "Mystery OR Lift", "Recovery", "Off"]},
        ],
    },
}

EXERCISES = {
    "categories": {
        "warmup": {"id": "warmup", "name": "Warm-up"},
        "lifting": {"id": "lifting", "name": "Lifting"},
        "recovery": {"id": "recovery", "name": "Recovery"},
    },
    "exercises": {
        "band-pulls": {"id": "band-pulls", "name": "Band Pull-Aparts", "category": "warmup",
                       "defaultSets": 2, "defaultReps": "15", "defaultNotes": "Slow and controlled"},
        "jumps": {"id": "jumps", "name": "Box Jumps", "category": "warmup",
                  "defaultSets": 3, "defaultReps": "5", "defaultRpe": "6"},
        "squat": {"id": "squat", "name": "Back Squat", "category": "lifting",
                  "videoUrl": "https://example.com/squat",
                  "defaultSets": 3, "defaultReps": "3x10", "defaultRpe": "7",
                  "variations": {"Lift": {"reps": "5x5"}}},
        "stretch": {"id": "stretch", "name": "Full Body Stretch", "category": "recovery",
                    "defaultReps": "30s"},
        "walk": {"id": "walk", "name": "Easy Walk", "category": "recovery", "defaultReps": "20 mins"},
    },
}


@pytest.fixture
def program_dict():
    return copy.deepcopy(PROGRAM)


@pytest.fixture
def exercises_dict():
    return copy.deepcopy(EXERCISES)


@pytest.fixture
def config(program_dict, exercises_dict):
    return ProgramConfig.from_dicts(program_dict, exercises_dict)


@pytest.fixture
def engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


@pytest.fixture
def store(engine):
    return ProgressStore(engine, "test-program")


@pytest.fixture
def tracker(config, store):
    return WorkoutTracker(config, store, default_start=START)


@pytest.fixture
def program_dir(tmp_path, program_dict, exercises_dict):
    d = tmp_path / "program"
    d.mkdir()
    (d / "program.json").write_text(json.dumps(program_dict), encoding="utf-8")
    (d / "exercises.json").write_text(json.dumps(exercises_dict), encoding="utf-8")
    return d
