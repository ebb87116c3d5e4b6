from datetime import date, datetime, timedelta

import pytest

from catalog import ExerciseOccurrence, ExerciseOverride, ProgramDataError, ScheduleWeek
from conftest import START
from logic import (
    base_workout_name, calculate_end_date, expand_workout, format_date_for_display,
    format_date_for_input, generate_schedule, normalize_date, parse_day_token,
    program_end_date, program_length_weeks, resolve_exercise, workout_info,
)


# ------------ day tokens ------------
def test_base_workout_name_takes_first_choice():
    assert base_workout_name("Recovery OR Hybrid B*") == "Recovery"
    assert base_workout_name("Hybrid B*") == "Hybrid B"
    assert base_workout_name(" Velocity ") == "Velocity"


def test_parse_day_token():
    tok = parse_day_token("Recovery OR Hybrid B*")
    assert tok.choices == ("Recovery", "Hybrid B")
    assert tok.base == "Recovery"
    assert tok.variant is True
    assert tok.is_composite

    plain = parse_day_token("Off")
    assert plain.choices == ("Off",)
    assert not plain.variant and not plain.is_composite


def test_workout_info_placeholder_for_unknown_token(config):
    assert workout_info("Lift OR Recovery", config.program).id == "lift"
    info = workout_info("Mystery", config.program)
    assert info.id == "custom"
    assert info.name == "Mystery"
    assert info.description == "Custom workout"
    assert info.sections == []


# ------------ resolution ------------
def test_resolve_keeps_identity_from_base(config):
    exercises = config.catalog.exercises
    occ = ExerciseOccurrence(id="squat", name="Something Else", sets=5, reps="1x1", rpe="9", notes="n")
    r = resolve_exercise(occ, exercises)
    assert r.id == "squat"
    assert r.name == "Back Squat"
    assert r.category == "lifting"
    assert r.video_url == "https://example.com/squat"
    assert (r.sets, r.reps, r.rpe, r.notes) == (5, "1x1", "9", "n")


def test_resolve_falls_back_to_defaults(config):
    r = resolve_exercise(ExerciseOccurrence(id="band-pulls"), config.catalog.exercises)
    assert r.name == "Band Pull-Aparts"
    assert (r.sets, r.reps, r.rpe, r.notes) == (2, "15", None, "Slow and controlled")


def test_resolve_reps_override_or_default(config):
    exercises = config.catalog.exercises
    assert resolve_exercise(ExerciseOccurrence(id="jumps", reps="3x5"), exercises).reps == "3x5"
    assert resolve_exercise(ExerciseOccurrence(id="jumps"), exercises).reps == "5"


def test_resolve_uses_variation_for_workout(config):
    exercises = config.catalog.exercises
    occ = ExerciseOccurrence(id="squat")
    assert resolve_exercise(occ, exercises).reps == "3x10"
    assert resolve_exercise(occ, exercises, "Lift").reps == "5x5"
    assert resolve_exercise(occ, exercises, "Lift OR Recovery*").reps == "5x5"
    # an explicit override still wins
    assert resolve_exercise(ExerciseOccurrence(id="squat", reps="2x2"), exercises, "Lift").reps == "2x2"


def test_variation_keyed_on_raw_token_wins(config):
    squat = config.catalog.exercises["squat"].model_copy(update={"variations": {
        "Lift": ExerciseOverride(reps="5x5"),
        "Lift OR Recovery*": ExerciseOverride(reps="4x4"),
    }})
    exercises = {**config.catalog.exercises, "squat": squat}
    occ = ExerciseOccurrence(id="squat")
    assert resolve_exercise(occ, exercises, "Lift OR Recovery*").reps == "4x4"
    assert resolve_exercise(occ, exercises, "Lift OR Recovery").reps == "5x5"


def test_resolve_unknown_exercise_degrades(config):
    occ = ExerciseOccurrence(id="sled-push", name="Sled Push", reps="4x20m")
    r = resolve_exercise(occ, config.catalog.exercises)
    assert r.id == "sled-push"
    assert r.name == "Sled Push"
    assert r.reps == "4x20m"
    assert r.sets is None

    assert resolve_exercise(ExerciseOccurrence(id="sled-push"), {}).name == "sled-push"


# ------------ expansion ------------
def test_expand_workout_preserves_section_order(config):
    expanded = expand_workout("Lift", config)
    assert expanded.workout == "Lift"
    assert [s.name for s in expanded.sections] == ["Warmup", "Lifting"]
    assert [e.id for e in expanded.sections[0].exercises] == ["band-pulls", "jumps"]
    assert expanded.sections[1].exercises[0].sets == 5
    assert expanded.rpe_range == "70-80%"
    assert expanded.notes == "Heavy day"
    assert expanded.total_exercises == 3


def test_expand_workout_is_pure(config):
    assert expand_workout("Lift OR Recovery*", config) == expand_workout("Lift OR Recovery*", config)


def test_expand_composite_token_uses_first_choice(config):
    assert expand_workout("Recovery OR Lift*", config).workout == "Recovery"


def test_expand_unknown_workout(config):
    assert expand_workout("Mystery", config) is None
    assert expand_workout("Mystery OR Lift", config) is None


def test_rest_day_only_counts_recovery_sections(config):
    expanded = expand_workout("Off", config)
    assert [s.name for s in expanded.sections] == ["Recovery"]
    assert expanded.total_exercises == 2


# ------------ dates & schedule ------------
def test_normalize_date():
    assert normalize_date(datetime(2024, 1, 15, 17, 45, 12, 999)) == date(2024, 1, 15)
    assert normalize_date(date(2024, 1, 15)) == date(2024, 1, 15)
    with pytest.raises(TypeError):
        normalize_date("2024-01-15")


def test_date_formats():
    d = date(2023, 12, 5)
    assert format_date_for_display(d) == "12/05/2023"
    assert format_date_for_input(d) == "2023-12-05"


def test_generate_schedule_shape_and_dates(config):
    grid = generate_schedule(START, config.program)
    assert len(grid) == len(config.program.schedule.weeks)
    for w, week in enumerate(grid):
        assert len(week) == 7
        for d, day in enumerate(week):
            assert day.date == START + timedelta(days=7 * w + d)
            assert day.workout == config.program.schedule.weeks[w].days[d]
            assert day.completed == {}
            assert day.user_notes is None
    assert grid[0][0].date == START


def test_generate_schedule_normalizes_start(config):
    grid = generate_schedule(datetime(2024, 1, 15, 23, 59), config.program)
    assert grid[0][0].date == date(2024, 1, 15)
    assert grid[1][0].date == date(2024, 1, 22)


def test_one_week_scenario(program_dict, exercises_dict):
    from catalog import ProgramConfig

    names = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
    program_dict["workoutTypes"] = {n: {"id": n.lower(), "name": n} for n in names}
    program_dict["schedule"] = {"length": 1, "unit": "weeks", "weeks": [{"days": names}]}
    program = ProgramConfig.from_dicts(program_dict, exercises_dict).program

    grid = generate_schedule(date(2024, 1, 15), program)
    assert grid[0][0].date == date(2024, 1, 15)
    assert grid[0][6].date == date(2024, 1, 21)
    assert program_end_date(date(2024, 1, 15), program) == date(2024, 1, 21)


def test_generate_requires_weeks(config):
    program = config.program.model_copy(update={"schedule": None})
    with pytest.raises(ProgramDataError):
        generate_schedule(START, program)

    empty = config.program.model_copy(
        update={"schedule": config.program.schedule.model_copy(update={"weeks": []})})
    with pytest.raises(ProgramDataError):
        generate_schedule(START, empty)


def test_generate_rejects_short_week(config):
    short = ScheduleWeek.model_construct(id=None, days=["Lift", "Off"])
    program = config.program.model_copy(
        update={"schedule": config.program.schedule.model_copy(update={"weeks": [short]})})
    with pytest.raises(ProgramDataError, match="2 days"):
        generate_schedule(START, program)


def test_end_date(config):
    assert calculate_end_date(date(2023, 12, 25), 8) == date(2024, 2, 18)
    assert program_length_weeks(config.program) == 2
    assert program_end_date(START, config.program) == date(2024, 1, 28)


def test_program_length_in_days(config):
    schedule = config.program.schedule.model_copy(update={"length": 10, "unit": "days"})
    assert program_length_weeks(config.program.model_copy(update={"schedule": schedule})) == 2
