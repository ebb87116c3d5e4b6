import logging
from datetime import date
from typing import Iterable, Optional, Tuple

from catalog import ProgramConfig
from logic import Grid, generate_schedule, normalize_date, program_end_date
from progress import (
    DayCompletion, ProgramProgress, WorkoutDetails,
    batch_set_completion, day_at, day_completion_state, program_progress,
    set_notes, toggle_exercise, week_summaries, workout_details,
)
from store import VIEW_MODES, ProgressStore

logger = logging.getLogger(__name__)


class ExpandedView:
    """Which day's details are open. At most one at a time."""

    def __init__(self):
        self.current: Optional[Tuple[int, int]] = None

    def select(self, week: int, day: int) -> Optional[Tuple[int, int]]:
        # re-selecting the open day closes it; any other day replaces it directly
        self.current = None if self.current == (week, day) else (week, day)
        return self.current

    def close(self):
        self.current = None

    def is_expanded(self, week: int, day: int) -> bool:
        return self.current == (week, day)


class WorkoutTracker:
    """
    One user's session over a program: the grid, its start date and view mode, the expanded day.
    Every mutation updates memory first and then persists; a failed write leaves memory as the
    source of truth (see `storage_error`).
    """

    def __init__(self, config: ProgramConfig, store: ProgressStore, default_start: Optional[date] = None):
        self.config = config
        self.store = store
        self.view = ExpandedView()

        start = store.load_start_date()
        grid = store.load_schedule()
        if not grid or not grid[0]:
            # nothing saved, or unreadable: start over from the start date
            self.start_date = start or normalize_date(default_start or date.today())
            grid = generate_schedule(self.start_date, config.program)
            store.save_schedule(grid, start=self.start_date)
        elif start != grid[0][0].date:
            # dates follow the saved grid
            self.start_date = grid[0][0].date
            logger.warning("start date for %s missing or out of step; using %s from the saved schedule",
                           config.program.id, self.start_date.isoformat())
            store.save_start_date(self.start_date)
        else:
            self.start_date = start
        self.grid: Grid = grid
        self.view_mode = store.load_view_mode()

    @property
    def program(self):
        return self.config.program

    @property
    def end_date(self) -> date:
        return program_end_date(self.start_date, self.program)

    @property
    def storage_error(self) -> Optional[str]:
        return self.store.last_error

    # ------------ reads ------------
    def day_state(self, week: int, day: int) -> DayCompletion:
        return day_completion_state(day_at(self.grid, week, day), self.config)

    def details(self, week: int, day: int) -> Optional[WorkoutDetails]:
        return workout_details(self.grid, week, day, self.config)

    def progress(self) -> ProgramProgress:
        return program_progress(self.grid, self.config)

    def week_progress(self):
        return week_summaries(self.grid, self.config)

    # ------------ expanded view ------------
    def select_day(self, week: int, day: int) -> Optional[Tuple[int, int]]:
        day_at(self.grid, week, day)
        return self.view.select(week, day)

    def close(self):
        self.view.close()

    # ------------ mutations ------------
    def _persist(self):
        self.store.save_schedule(self.grid)

    def toggle_exercise(self, week: int, day: int, key: str):
        updated = toggle_exercise(self.grid, week, day, key)
        self._persist()
        return updated

    def batch_set_completion(self, week: int, day: int, keys: Iterable[str], value: bool):
        updated = batch_set_completion(self.grid, week, day, keys, value)
        self._persist()
        return updated

    def set_notes(self, week: int, day: int, text: Optional[str]):
        updated = set_notes(self.grid, week, day, text)
        self._persist()
        return updated

    def complete_day(self, week: int, day: int):
        """Mark every exercise of the day done and collapse the details."""
        info = self.details(week, day)
        updated = self.batch_set_completion(week, day, info.keys if info else [], True)
        self.close()
        return updated

    def clear_day(self, week: int, day: int):
        """Untick every exercise and drop the notes; the details stay open."""
        info = self.details(week, day)
        batch_set_completion(self.grid, week, day, info.keys if info else [], False)
        updated = set_notes(self.grid, week, day, None)
        self._persist()
        return updated

    def change_start_date(self, new_start) -> Grid:
        """
        Destructive: rebuilds the whole grid from `new_start`. All completion marks and notes
        are discarded; nothing carries over from the previous grid.
        """
        self.start_date = normalize_date(new_start)
        self.grid = generate_schedule(self.start_date, self.program)
        self.view.close()
        logger.info("program %s regenerated from %s", self.program.id, self.start_date.isoformat())
        self.store.save_schedule(self.grid, start=self.start_date)
        return self.grid

    def toggle_view_mode(self) -> str:
        self.view_mode = VIEW_MODES[1] if self.view_mode == VIEW_MODES[0] else VIEW_MODES[0]
        self.store.save_view_mode(self.view_mode)
        return self.view_mode
