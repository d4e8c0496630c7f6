"""Progress reporting for sync operations."""

from __future__ import annotations

from typing import Protocol


class ProgressReporter(Protocol):
    """Protocol for pipeline progress reporting."""

    def update_status(self, message: str) -> None: ...
    def step(self, step_name: str, current: int, total: int) -> None: ...


class RichProgressReporter:
    """Rich-based reporter printing one status line per pipeline step."""

    def __init__(self) -> None:
        from rich.console import Console
        from rich.markup import escape

        self._escape = escape
        self.console = Console()

    def update_status(self, message: str) -> None:
        self.console.print(f"[bold blue]>>>[/] {self._escape(message)}", highlight=False)

    def step(self, step_name: str, current: int, total: int) -> None:
        self.console.print(f"  [dim]\\[{current}/{total}][/] {self._escape(step_name)}", highlight=False)


class NullProgressReporter:
    """No-op reporter for --json mode or testing."""

    def update_status(self, message: str) -> None:
        pass

    def step(self, step_name: str, current: int, total: int) -> None:
        pass
