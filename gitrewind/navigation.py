"""
Cursor state over a paginated `HistoryModel`, and the key dispatch that drives it.

The controller knows nothing about Textual; the app translates its own events
into `KeyEvent` / `ResizeEvent` and acts on the `Action` that `dispatch`
returns.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from gitrewind.history import CommitRecord, HistoryModel

logger = logging.getLogger(__name__)

# title, header, status line, footer and one spare row
CHROME_ROWS = 5


class NavigationController:
    """Tracks which page is shown and which row on it is highlighted."""

    def __init__(self, history: HistoryModel) -> None:
        self.history = history
        self.page = 0
        self.cursor = 0

    def records(self) -> list[CommitRecord]:
        """Records on the current page; empty when git failed."""
        return self.history.get_page(self.page) or []

    def page_count(self) -> int:
        return self.history.page_count() or 0

    def _page_len(self, page: int) -> int:
        return len(self.history.get_page(page) or [])

    def move_down(self) -> None:
        if self.cursor + 1 < self._page_len(self.page):
            self.cursor += 1
        elif self.page + 1 < self.page_count():
            self.page += 1
            self.cursor = 0
        logger.debug(f"NavigationController.move_down: page={self.page} cursor={self.cursor}")

    def move_up(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1
        elif self.page > 0:
            self.page -= 1
            self.cursor = max(self._page_len(self.page) - 1, 0)
        logger.debug(f"NavigationController.move_up: page={self.page} cursor={self.cursor}")

    def page_down(self) -> None:
        self.page = max(min(self.page + 1, self.page_count() - 1), 0)
        self.cursor = 0

    def page_up(self) -> None:
        self.page = max(min(self.page - 1, self.page_count() - 1), 0)
        self.cursor = 0

    def first_page(self) -> None:
        self.page = 0
        self.cursor = 0

    def clamp(self) -> None:
        """Pull (page, cursor) back inside the history if it shrank underneath us."""
        self.page = max(min(self.page, self.page_count() - 1), 0)
        self.cursor = max(min(self.cursor, self._page_len(self.page) - 1), 0)

    def resize(self, height: int) -> None:
        """Derive the page size from the viewport height and go back to the top."""
        self.history.resize(height - CHROME_ROWS)
        self.page = 0
        self.cursor = 0
        logger.debug(f"NavigationController.resize: height={height} page_size={self.history.page_size}")

    def selected(self) -> Optional[CommitRecord]:
        records = self.records()
        if 0 <= self.cursor < len(records):
            return records[self.cursor]
        return None

    def select_current(self) -> Optional[bool]:
        """Reset the working tree to the highlighted commit.

        Returns None when nothing is highlighted, otherwise whether the
        stash and reset both succeeded.
        """
        record = self.selected()
        if record is None:
            logger.debug(f"NavigationController.select_current: nothing at page={self.page} cursor={self.cursor}")
            return None
        return self.history.reset_to(record)

    def finish(self) -> Optional[bool]:
        """Restore the changes stashed by `select_current`, if any."""
        if not self.history.stash_pending:
            return None
        return self.history.unstash()


@dataclass(frozen=True)
class KeyEvent:
    key: str


@dataclass(frozen=True)
class ResizeEvent:
    width: int
    height: int


@dataclass(frozen=True)
class Unsupported:
    pass


Event = Union[KeyEvent, ResizeEvent, Unsupported]


class Action(enum.Enum):
    """What the UI has to do after an event was dispatched."""

    NONE = "none"
    REDRAW = "redraw"
    SELECT = "select"
    RESTORE = "restore"
    HELP = "help"
    QUIT = "quit"


_MOVES = {
    "up": NavigationController.move_up,
    "k": NavigationController.move_up,
    "down": NavigationController.move_down,
    "j": NavigationController.move_down,
    "pageup": NavigationController.page_up,
    "pagedown": NavigationController.page_down,
    "home": NavigationController.first_page,
}

_ACTIONS = {
    "enter": Action.SELECT,
    "u": Action.RESTORE,
    "?": Action.HELP,
    "question_mark": Action.HELP,
    "h": Action.HELP,
    "q": Action.QUIT,
    "Q": Action.QUIT,
    "escape": Action.QUIT,
}


def dispatch(controller: NavigationController, event: Event) -> Action:
    """Apply one input event to `controller` and report what the UI must do."""
    if isinstance(event, ResizeEvent):
        controller.resize(event.height)
        return Action.REDRAW
    if not isinstance(event, KeyEvent):
        return Action.NONE
    move = _MOVES.get(event.key)
    if move is not None:
        move(controller)
        return Action.REDRAW
    return _ACTIONS.get(event.key, Action.NONE)
