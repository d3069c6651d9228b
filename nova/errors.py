"""Exceptions raised by Nova pipelines and task graphs."""

from __future__ import annotations

from pathlib import Path


class PipelineError(Exception):
    """Error during a pipeline run with file context.

    Attributes:
        pipeline: Name of the pipeline that failed (e.g. ``scss``, ``minIMG``).
        message: Human-readable error message.
        source_path: Path to the source file that caused the error, if known.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        pipeline: str,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.pipeline = pipeline
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        location = f" ({source_path})" if source_path else ""
        super().__init__(f"{pipeline}{location}: {message}")


class TaskError(Exception):
    """A task in a task graph failed; its dependents were not started.

    Attributes:
        task_name: Name of the failed task.
        original_error: The exception the task raised.
    """

    def __init__(self, task_name: str, original_error: Exception):
        self.task_name = task_name
        self.original_error = original_error
        super().__init__(f"Task '{task_name}' failed: {original_error}")
