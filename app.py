import os, io, logging
from pathlib import Path
from flask import Flask, request, send_file
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from sqlalchemy import create_engine

from catalog import ProgramDataError, load_program_config
from logic import (
    format_date_for_display, format_date_for_input, parse_day_token, workout_info,
)
from progress import day_at, day_completion_state, exercise_keys, workout_details
from store import ProgressStore, parse_stored_date
from tracker import WorkoutTracker

DEFAULT_PROGRAM_DIR = Path(__file__).resolve().parent / "programs" / "driveline-catcher-velo"


# ------------ JSON shapes ------------
def _day_payload(tracker: WorkoutTracker, w: int, d: int) -> dict:
    day = day_at(tracker.grid, w, d)
    token = parse_day_token(day.workout)
    info = workout_info(day.workout, tracker.program)
    state = day_completion_state(day, tracker.config)
    return {
        "id": f"week{w}-day{d}",
        "week": w, "day": d,
        "date": day.date.isoformat(),
        "display_date": format_date_for_display(day.date),
        "workout": day.workout,
        "choices": list(token.choices),
        "variant": token.variant,
        "name": info.name,
        "color_class": info.color_class,
        "description": info.description,
        "rpe_range": info.rpe_range,
        "completed": day.completed,
        "user_notes": day.user_notes,
        "total": state.total,
        "completed_count": state.completed,
        "percentage": state.percentage,
        "is_complete": state.is_complete,
        "is_in_progress": state.is_in_progress,
        "expanded": tracker.view.is_expanded(w, d),
    }


def _details_payload(tracker: WorkoutTracker, w: int, d: int) -> dict:
    payload = _day_payload(tracker, w, d)
    info = tracker.details(w, d)
    sections = []
    if info:
        keys = iter(info.keys)
        for section in info.details.sections:
            rows = []
            for ex in section.exercises:
                key = next(keys)
                rows.append({**ex.model_dump(), "key": key, "done": bool(info.day.completed.get(key))})
            sections.append({"name": section.name, "exercises": rows})
        payload["target_rpe"] = info.details.rpe_range
        payload["notes"] = info.details.notes
    payload["sections"] = sections
    return payload


def _progress_payload(tracker: WorkoutTracker) -> dict:
    p = tracker.progress()
    return {
        "percentage": p.percentage, "completed": p.completed, "total": p.total,
        "weeks": [{"week": i + 1, "percentage": s.percentage, "completed": s.completed, "total": s.total}
                  for i, s in enumerate(tracker.week_progress())],
    }


def _error(msg: str, status: int):
    return {"ok": False, "error": msg}, status


def create_app(program_dir=None, database_url=None, default_start=None) -> Flask:
    program_dir = program_dir or os.environ.get("PROGRAM_DIR", str(DEFAULT_PROGRAM_DIR))
    database_url = database_url or os.environ.get("DATABASE_URL", "sqlite:///local.db")

    config = load_program_config(program_dir)
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    store = ProgressStore(engine, config.program.id)
    tracker = WorkoutTracker(config, store, default_start=default_start)

    app = Flask(__name__)
    app.extensions["tracker"] = tracker

    @app.errorhandler(IndexError)
    def _no_such_day(e):
        return _error(str(e), 404)

    @app.errorhandler(ProgramDataError)
    def _bad_program(e):
        return _error(str(e), 400)

    @app.route("/healthz")
    def healthz():
        try:
            store.ensure_db()
            return "ok", 200
        except Exception as e:
            return f"db error: {e}", 500

    @app.route("/program")
    def program():
        p = config.program
        return {
            "id": p.id, "name": p.name, "version": p.version, "description": p.description,
            "start_date": format_date_for_input(tracker.start_date),
            "end_date": format_date_for_input(tracker.end_date),
            "view_mode": tracker.view_mode,
            "workout_types": {k: {"name": wt.name, "color_class": wt.color_class,
                                  "description": wt.description, "rpe_range": wt.rpe_range}
                              for k, wt in p.workout_types.items()},
        }

    @app.route("/schedule")
    def schedule():
        return {
            "start_date": tracker.start_date.isoformat(),
            "end_date": tracker.end_date.isoformat(),
            "view_mode": tracker.view_mode,
            "expanded": list(tracker.view.current) if tracker.view.current else None,
            "progress": _progress_payload(tracker),
            "storage_error": tracker.storage_error,
            "weeks": [[_day_payload(tracker, w, d) for d in range(len(week))]
                      for w, week in enumerate(tracker.grid)],
        }

    @app.route("/days/<int:w>/<int:d>")
    def day_view(w, d):
        return _details_payload(tracker, w, d)

    @app.route("/days/<int:w>/<int:d>/select", methods=["POST"])
    def select_day(w, d):
        current = tracker.select_day(w, d)
        return {"ok": True, "expanded": list(current) if current else None}

    @app.route("/close", methods=["POST"])
    def close():
        tracker.close()
        return {"ok": True, "expanded": None}

    @app.route("/days/<int:w>/<int:d>/exercises/<key>/toggle", methods=["POST"])
    def toggle(w, d, key):
        day = tracker.toggle_exercise(w, d, key)
        return {"ok": True, "key": key, "done": day.completed[key], "storage_error": tracker.storage_error}

    @app.route("/days/<int:w>/<int:d>/complete", methods=["POST"])
    def complete(w, d):
        tracker.complete_day(w, d)
        return {"ok": True, "day": _day_payload(tracker, w, d), "storage_error": tracker.storage_error}

    @app.route("/days/<int:w>/<int:d>/clear", methods=["POST"])
    def clear(w, d):
        tracker.clear_day(w, d)
        return {"ok": True, "day": _day_payload(tracker, w, d), "storage_error": tracker.storage_error}

    @app.route("/days/<int:w>/<int:d>/notes", methods=["PUT"])
    def notes(w, d):
        data = request.get_json(silent=True) or {}
        text = data.get("notes")
        if text is not None and not isinstance(text, str):
            return _error("notes must be a string", 400)
        day = tracker.set_notes(w, d, text)
        return {"ok": True, "user_notes": day.user_notes, "storage_error": tracker.storage_error}

    @app.route("/start-date", methods=["POST"])
    def start_date():
        data = request.get_json(silent=True) or {}
        if data.get("confirm") is not True:
            return _error("changing the start date resets all progress; resend with confirm=true", 409)
        try:
            new_start = parse_stored_date(str(data.get("start_date", "")))
        except ValueError:
            return _error("start_date must be an ISO date (YYYY-MM-DD)", 400)
        tracker.change_start_date(new_start)
        return {"ok": True, "start_date": tracker.start_date.isoformat(),
                "end_date": tracker.end_date.isoformat(), "storage_error": tracker.storage_error}

    @app.route("/view-mode/toggle", methods=["POST"])
    def view_mode():
        return {"ok": True, "view_mode": tracker.toggle_view_mode()}

    @app.route("/progress")
    def progress():
        return _progress_payload(tracker)

    @app.route("/progress.png")
    def progress_png():
        weeks = tracker.week_progress()
        fig, ax = plt.subplots(figsize=(7, 3))
        x = [i + 1 for i in range(len(weeks))]
        ax.bar(x, [s.percentage for s in weeks])
        ax.set_xlabel("Week"); ax.set_ylabel("Days complete (%)"); ax.set_ylim(0, 100)
        ax.set_xticks(x); ax.grid(True, axis="y", alpha=0.3)
        bio = io.BytesIO(); fig.tight_layout(); fig.savefig(bio, format="png", dpi=110); plt.close(fig); bio.seek(0)
        return send_file(bio, mimetype="image/png")

    @app.route("/export.xlsx")
    def export_xlsx():
        day_rows, exercise_rows = [], []
        for w, week in enumerate(tracker.grid):
            for d, day in enumerate(week):
                state = day_completion_state(day, config)
                day_rows.append({
                    "week": w + 1, "day": d + 1, "date": day.date, "workout": day.workout,
                    "total": state.total, "completed": state.completed,
                    "percentage": state.percentage, "is_complete": state.is_complete,
                    "notes": day.user_notes,
                })
                info = workout_details(tracker.grid, w, d, config)
                if info is None:
                    continue
                keys = iter(exercise_keys(w, d, info.details))
                for section in info.details.sections:
                    for ex in section.exercises:
                        key = next(keys)
                        exercise_rows.append({
                            "week": w + 1, "day": d + 1, "date": day.date, "workout": day.workout,
                            "section": section.name, "exercise": ex.name, "sets": ex.sets,
                            "reps": ex.reps, "rpe": ex.rpe, "done": bool(day.completed.get(key)),
                        })
        df_days = pd.DataFrame(day_rows)
        df_ex = pd.DataFrame(exercise_rows)
        bio = io.BytesIO()
        with pd.ExcelWriter(bio, engine="openpyxl") as xw:
            (df_days if not df_days.empty else pd.DataFrame()).to_excel(xw, sheet_name="schedule", index=False)
            (df_ex if not df_ex.empty else pd.DataFrame()).to_excel(xw, sheet_name="exercises", index=False)
        bio.seek(0)
        return send_file(bio, as_attachment=True, download_name=f"{config.program.id}_progress.xlsx",
                         mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")

    return app


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=True)
