#!/usr/bin/env python3
"""
Git Rewind Navigator TUI
"""
from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
import traceback
from typing import Optional, Sequence

from rich.text import Text

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Label, Static

from gitrewind.git import GitRunner
from gitrewind.history import CommitRecord, HistoryModel, RepositoryError
from gitrewind.navigation import (
    CHROME_ROWS,
    Action,
    KeyEvent,
    NavigationController,
    ResizeEvent,
    dispatch,
)
from gitrewind.status import discover_root, scan_working_tree

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

FOOTER_TEXT = "q(uit)  ?/h(elp)  ↑ ↓  PgUp/PgDn  Enter(rewind)  u(nstash)"


def render_commit_page(
    records: Sequence[CommitRecord], cursor: int, current_hash: Optional[str]
) -> Text:
    """Render one page of commits, highlighting the cursor row.

    The commit currently checked out is prefixed with `*`. `current_hash` is
    looked up once per frame by the caller and compared to each row the same
    way `HistoryModel.is_current_commit` does, so a page costs one HEAD query.
    """
    if not records:
        return Text("No commits to show", style="dim")
    text = Text()
    for row, record in enumerate(records):
        current = record.short_hash == current_hash
        line = Text()
        line.append("* " if current else "  ", style="bold green")
        line.append(record.short_hash, style="bold green" if current else "yellow")
        line.append(f"  {record.relative_time:<16} ", style="cyan")
        line.append(f"{record.author:<20} ", style="magenta")
        line.append(record.subject)
        if row == cursor:
            line.stylize("reverse")
        if row:
            text.append("\n")
        text.append_text(line)
    return text


def render_header(page: int, page_count: int, label: str, tree_status: Optional[str] = None) -> Text:
    """Page position and repository label, e.g. ``2/7 [/src/repo]``."""
    shown = page + 1 if page_count else 0
    header = Text(f"{shown}/{page_count} [{label}]", style="bold")
    if tree_status:
        header.append(f"  working tree: {tree_status}", style="dim")
    return header


class MessageModal(ModalScreen):
    """Simple modal that shows a message and closes on any key."""

    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.message = message

    def compose(self) -> ComposeResult:
        yield Static(Text(self.message), id="message")

    def on_key(self, event: events.Key) -> None:
        """Close the modal on any key press."""
        event.stop()
        self.app.pop_screen()


class ConfirmModal(ModalScreen[bool]):
    """Yes/no question; `y` confirms, any other key cancels."""

    def __init__(self, question: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.question = question

    def compose(self) -> ComposeResult:
        yield Static(Text(self.question + "  [y/N]", style="bold"), id="confirm")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.dismiss(event.key in ("y", "Y"))


HELP_TEXT = """
Git Rewind Navigator (gitrewind)
================================

Browse the commit history of a repository page by page and roll the
working tree back to any commit.

  ↑ / k          previous commit (crosses to the previous page)
  ↓ / j          next commit (crosses to the next page)
  PgUp / PgDn    previous / next page
  Home           first page
  Enter          rewind: stash pending changes (untracked included),
                 then `git reset --hard` to the highlighted commit
  u              re-apply the stash made by the last rewind
  ? / h          this help
  q / Esc        quit (re-applies a pending stash first)

The commit marked `*` is the one checked out right now. The list itself
stays anchored at the HEAD seen at startup, so newer commits remain
reachable after a rewind.

Press any key to return.
"""


class GitRewindApp(App):
    """Single-column commit browser driven by a `NavigationController`."""

    TITLE = "Git Rewind Navigator"
    CSS = """
App {
    overflow: hidden;
    scrollbar-size: 0 0;
}
#title {
    height: 1;
    padding: 0 1;
    width: 100%;
    text-align: center;
}
#header {
    height: 1;
    padding: 0 1;
}
#commits {
    height: 1fr;
    padding: 0 1;
}
#status {
    height: 1;
    padding: 0 1;
}
#footer {
    height: 1;
    padding: 0 1;
    text-align: left;
}
MessageModal, ConfirmModal {
    align: center middle;
}
#message, #confirm {
    width: auto;
    max-width: 90%;
    height: auto;
    border: heavy #555555;
    padding: 0 1;
}
"""

    def __init__(self, controller: NavigationController, confirm: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self.controller = controller
        self.confirm = confirm
        self.repo_label = discover_root(controller.history.cwd) or controller.history.cwd
        self.viewport_height: Optional[int] = None
        self.status_message = ""
        self.current_hash: Optional[str] = None

    def compose(self) -> ComposeResult:
        with Vertical(id="root"):
            yield Label(Text(self.TITLE, style="bold"), id="title")
            yield Static(id="header")
            yield Static(id="commits")
            yield Label(id="status")
            yield Label(Text(FOOTER_TEXT, style="bold"), id="footer")

    def on_mount(self) -> None:
        self.viewport_height = self.size.height
        dispatch(self.controller, ResizeEvent(self.size.width, self.size.height))
        self.refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        # unchanged height keeps the page boundaries, so keep the cursor too
        if event.size.height == self.viewport_height:
            return
        self.viewport_height = event.size.height
        dispatch(self.controller, ResizeEvent(event.size.width, event.size.height))
        self.refresh_view()

    def refresh_view(self) -> None:
        """Redraw header, commit page and status line from the controller state."""
        controller = self.controller
        controller.clamp()
        records = controller.records()
        self.current_hash = controller.history.current_commit()
        tree = scan_working_tree(controller.history.cwd)
        try:
            self.query_one("#header", Static).update(
                render_header(
                    controller.page,
                    controller.page_count(),
                    self.repo_label,
                    tree.describe() if tree else None,
                )
            )
            self.query_one("#commits", Static).update(
                render_commit_page(records, controller.cursor, self.current_hash)
            )
            self.query_one("#status", Label).update(Text(self.status_message))
        except Exception as e:
            logger.debug(f"GitRewindApp.refresh_view: exception: {e}")
            logger.debug(traceback.format_exc())

    def set_status(self, message: str) -> None:
        self.status_message = message
        logger.debug(f"GitRewindApp.set_status: {message}")

    def on_key(self, event: events.Key) -> None:
        """Translate the key into a navigation event and carry out the resulting action."""
        logger.debug(f"GitRewindApp.on_key: key={event.key}")
        action = dispatch(self.controller, KeyEvent(event.key))
        if action is Action.NONE:
            return
        event.stop()
        if action is Action.REDRAW:
            self.refresh_view()
        elif action is Action.SELECT:
            self.request_rewind()
        elif action is Action.RESTORE:
            self.restore_stash()
        elif action is Action.HELP:
            self.push_screen(MessageModal(HELP_TEXT))
        elif action is Action.QUIT:
            self.quit_session()

    def request_rewind(self) -> None:
        record = self.controller.selected()
        if record is None:
            self.set_status("Nothing selected")
            self.refresh_view()
            return
        if not self.confirm:
            self.rewind()
            return
        self.push_screen(
            ConfirmModal(f"Stash pending changes and reset to {record.short_hash} ({record.subject})?"),
            self.on_rewind_confirmed,
        )

    def on_rewind_confirmed(self, confirmed: Optional[bool]) -> None:
        if confirmed:
            self.rewind()
        else:
            self.set_status("Rewind cancelled")
            self.refresh_view()

    def rewind(self) -> None:
        record = self.controller.selected()
        result = self.controller.select_current()
        if result is None:
            self.set_status("Nothing selected")
        elif result:
            if self.controller.history.stash_pending:
                self.set_status(f"Reset to {record.short_hash}; pending changes stashed, press u to restore them")
            else:
                self.set_status(f"Reset to {record.short_hash}")
        elif self.controller.history.stash_pending:
            self.set_status(f"{self.controller.history.last_error}; changes are stashed, press u to restore them")
        else:
            self.set_status(f"Working tree unchanged: {self.controller.history.last_error}")
        self.refresh_view()

    def restore_stash(self) -> None:
        result = self.controller.finish()
        if result is None:
            self.set_status("No stash to restore")
        elif result:
            self.set_status("Pending changes restored")
        else:
            self.set_status(f"Restore failed: {self.controller.history.last_error}")
        self.refresh_view()

    def quit_session(self) -> None:
        message = None
        result = self.controller.finish()
        if result is True:
            message = "gitrewind: pending changes restored from stash"
        elif result is False:
            message = (
                f"gitrewind: could not restore stashed changes ({self.controller.history.last_error}); "
                "they are still in `git stash list`"
            )
        self.exit(message)


def configure_logging(log_file: Optional[str], level: str = "DEBUG") -> None:
    """Send log records to `log_file`; logging stays off without one."""
    if not log_file:
        return
    logging.basicConfig(filename=log_file, level=getattr(logging, level.upper()), format=LOG_FORMAT)


def initial_page_size() -> int:
    return max(1, shutil.get_terminal_size().lines - CHROME_ROWS)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point: parse CLI args and run the Textual app."""
    parser = argparse.ArgumentParser(prog="gitrewind", description=__doc__)
    parser.add_argument("path", nargs="?", help="Directory inside the repository to browse", default=os.getcwd())
    parser.add_argument("--git", dest="git_bin", default=None,
                        help="git binary to run (default: $GIT_BIN_PATH/git or git on PATH)")
    parser.add_argument("--no-confirm", dest="confirm", action="store_false",
                        help="rewind on Enter without asking first")
    parser.add_argument("--log-file", default=None, help="write a debug log to this file")
    parser.add_argument("--log-level", default="DEBUG",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="log level for --log-file")
    args = parser.parse_args(argv)

    configure_logging(args.log_file, args.log_level)

    try:
        history = HistoryModel(args.path, initial_page_size(), runner=GitRunner(args.git_bin))
    except RepositoryError as exc:
        logger.debug(f"main: {exc}")
        parser.exit(1, f"gitrewind: {exc}\n")

    app = GitRewindApp(NavigationController(history), confirm=args.confirm)
    message = app.run()
    if message:
        print(message, file=sys.stderr)


if __name__ == "__main__":
    main()
