"""
Global progress reporting module for JobTalk.

This module provides a centralized progress reporter that shows status updates
while a recording is transcribed and categorized.
"""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.status import Status

from .types import PipelineStatus

STATUS_MESSAGES = {
    PipelineStatus.TRANSCRIBING: "Transcribing audio…",
    PipelineStatus.CATEGORIZING: "Categorizing information…",
}


class ProgressReporter:
    """
    Global progress reporter for status updates with step completion tracking.

    Provides a centralized way to report progress steps without passing
    console or status objects through function parameters. Tracks completed
    steps and shows checkmarks.
    """

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._completed_steps: List[str] = []
        self._current_step: Optional[str] = None

    @property
    def completed_steps(self) -> List[str]:
        return list(self._completed_steps)

    def initialize(self, console: Console, initial_message: str = "Starting...") -> Status:
        """
        Initialize the reporter with a console and create a status object.

        Args:
            console: Rich console instance
            initial_message: Initial status message

        Returns:
            Status object that should be used in a context manager
        """
        self._console = console
        self._status = console.status(f"[dim]{initial_message}[/dim]")
        self._completed_steps = []
        self._current_step = initial_message
        return self._status

    def step(self, message: str) -> None:
        """
        Update the current progress step and mark previous step as completed.

        Args:
            message: Progress step message to display
        """
        if self._status is not None:
            if self._current_step is not None:
                self._completed_steps.append(self._current_step)
                if self._console is not None:
                    self._console.print(f"[green]✓[/green] [dim]{self._current_step}[/dim]")

            self._current_step = message
            self._status.update(f"[dim]{message}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        """
        Mark the current step as completed without starting a new one.

        Args:
            message: Optional custom completion message
        """
        if self._current_step is not None:
            completion_msg = message or self._current_step
            self._completed_steps.append(completion_msg)
            if self._console is not None:
                self._console.print(f"[green]✓[/green] [dim]{completion_msg}[/dim]")
            self._current_step = None

    def fail_step(self, message: str) -> None:
        """Mark the current step as failed and stop tracking it."""
        if self._console is not None and self._current_step is not None:
            self._console.print(f"[red]✗[/red] [dim]{self._current_step}[/dim] {escape(message)}")
        self._current_step = None

    def on_pipeline_status(self, status: PipelineStatus, detail: Optional[str] = None) -> None:
        """Listener for IntakePipeline status notifications."""
        if status in STATUS_MESSAGES:
            self.step(STATUS_MESSAGES[status])
        elif status is PipelineStatus.DONE:
            self.complete_step()
        elif status is PipelineStatus.ERROR:
            self.fail_step(detail or "")


# Global reporter instance
reporter = ProgressReporter()
