"""
Persistence of tracker state, one set of keys per program.

Everything is stored as text under string keys (a key/value table), so a saved schedule is
read back exactly as it was written. Read failures return None so the caller can regenerate;
write failures are logged and remembered in `last_error`, never raised.
"""
import json
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logic import Grid, ScheduledDay, normalize_date
from models import Base, StoredValue
from progress import KEY_VERSION

logger = logging.getLogger(__name__)

VIEW_MODES = ("calendar", "list")
DEFAULT_VIEW_MODE = "calendar"


class StorageError(RuntimeError):
    pass


def storage_keys(program_id: str) -> dict:
    return {
        "schedule": f"workout-tracker-state-{program_id}",
        "start_date": f"program-start-date-{program_id}",
        "view_mode": f"workout-view-mode-{program_id}",
        "key_version": f"workout-tracker-key-version-{program_id}",
    }


# ------------ grid (de)serialization ------------
def parse_stored_date(value: str) -> date:
    """Accepts "2024-01-15" as well as full timestamps such as "2024-01-15T05:00:00.000Z"."""
    if len(value) == 10:
        return date.fromisoformat(value)
    return normalize_date(datetime.fromisoformat(value.replace("Z", "+00:00")))


def serialize_grid(grid: Grid) -> str:
    weeks = []
    for week in grid:
        days = []
        for day in week:
            row = {"date": day.date.isoformat(), "workout": day.workout, "completed": dict(day.completed)}
            if day.user_notes is not None:
                row["userNotes"] = day.user_notes
            days.append(row)
        weeks.append(days)
    return json.dumps(weeks)


def deserialize_grid(raw: str) -> Grid:
    """Raises ValueError for anything that is not a list of weeks of day records."""
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("schedule is not a list of weeks")
        return [
            [
                ScheduledDay(
                    date=parse_stored_date(d["date"]),
                    workout=d["workout"],
                    completed=dict(d.get("completed") or {}),
                    user_notes=d.get("userNotes"),
                )
                for d in week
            ]
            for week in data
        ]
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"malformed schedule: {e}") from e


class ProgressStore:
    def __init__(self, engine, program_id: str):
        self.engine = engine
        self.program_id = program_id
        self.keys = storage_keys(program_id)
        self.last_error: Optional[str] = None
        self._db_ready = False

    def ensure_db(self):
        """Connect once and create tables lazily."""
        if self._db_ready:
            return
        with self.engine.connect() as conn:
            conn.execute(text("select 1"))
        Base.metadata.create_all(self.engine)
        self._db_ready = True

    # ------------ raw key/value access ------------
    def _get(self, key: str) -> Optional[str]:
        try:
            self.ensure_db()
            with Session(self.engine) as s:
                row = s.scalars(select(StoredValue).where(StoredValue.key == key)).first()
                return row.value if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"read {key}: {e}") from e

    def _set(self, key: str, value: str):
        try:
            self.ensure_db()
            with Session(self.engine) as s:
                row = s.scalars(select(StoredValue).where(StoredValue.key == key)).first()
                if row is None:
                    s.add(StoredValue(key=key, value=value))
                else:
                    row.value = value
                s.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"write {key}: {e}") from e

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._get(key)
        except StorageError:
            logger.exception("failed to load %s", key)
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self._set(key, value)
        except StorageError as e:
            logger.error("failed to save %s: %s", key, e)
            self.last_error = str(e)
            return False
        return True

    # ------------ schedule ------------
    def load_schedule(self) -> Optional[Grid]:
        """The saved grid, or None when nothing usable is stored."""
        raw = self._read(self.keys["schedule"])
        if raw is None:
            return None

        version = self._read(self.keys["key_version"])
        if version is not None and version != str(KEY_VERSION):
            logger.warning("discarding schedule for %s saved with key version %s (current %s)",
                           self.program_id, version, KEY_VERSION)
            return None

        try:
            return deserialize_grid(raw)
        except ValueError as e:
            logger.warning("discarding unreadable schedule for %s: %s", self.program_id, e)
            return None

    def save_schedule(self, grid: Grid, start: Optional[date] = None) -> bool:
        """
        Writes the grid and its key version, plus the start date when given. `last_error` is
        reset once up front, so a failure on any of these keys is still reported afterwards.
        """
        self.last_error = None
        ok = True
        if start is not None:
            ok = self._write(self.keys["start_date"], normalize_date(start).isoformat())
        ok = self._write(self.keys["schedule"], serialize_grid(grid)) and ok
        return self._write(self.keys["key_version"], str(KEY_VERSION)) and ok

    # ------------ start date / view mode ------------
    def load_start_date(self) -> Optional[date]:
        raw = self._read(self.keys["start_date"])
        if raw is None:
            return None
        try:
            return parse_stored_date(raw)
        except ValueError:
            logger.warning("ignoring unreadable start date %r for %s", raw, self.program_id)
            return None

    def save_start_date(self, start: date) -> bool:
        self.last_error = None
        return self._write(self.keys["start_date"], normalize_date(start).isoformat())

    def load_view_mode(self) -> str:
        raw = self._read(self.keys["view_mode"])
        return raw if raw in VIEW_MODES else DEFAULT_VIEW_MODE

    def save_view_mode(self, mode: str) -> bool:
        if mode not in VIEW_MODES:
            raise ValueError(f"view mode must be one of {VIEW_MODES}")
        self.last_error = None
        return self._write(self.keys["view_mode"], mode)
