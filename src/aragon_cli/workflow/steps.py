from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TextIO

from aragon_cli.errors import StepFailed

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    DISABLED = "disabled"
    FAILED = "failed"


_MARKERS: dict[StepStatus, str] = {
    StepStatus.DONE: "✔",
    StepStatus.SKIPPED: "↓",
    StepStatus.FAILED: "✖",
}


class StepHandle:
    """What a running task sees of its own step: a mutable title and a skip switch."""

    def __init__(self, title: str) -> None:
        self.title = title
        self.skip_reason: str | None = None

    def skip(self, reason: str) -> None:
        self.skip_reason = reason


Task = Callable[[Any, StepHandle], "Sequence[Step] | None"]


@dataclass(slots=True)
class Step:
    """A named unit of work.

    `skip(ctx)` returns a reason to skip (or None to run); `enabled(ctx)` hides
    the step entirely when False. A task may return child steps, which run
    right after it, in order.
    """

    title: str
    task: Task
    skip: Callable[[Any], str | None] | None = None
    enabled: Callable[[Any], bool] | None = None


@dataclass(frozen=True, slots=True)
class StepResult:
    title: str
    status: StepStatus
    depth: int = 0
    reason: str | None = None
    children: list[StepResult] = field(default_factory=list)


class StepRunner:
    """Run steps one after another, reporting progress to `out`.

    The first failing step aborts the run with `StepFailed`.
    """

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out or sys.stdout

    def run(self, steps: Sequence[Step], ctx: Any) -> list[StepResult]:
        return self._run_level(steps, ctx, depth=0)

    def _run_level(self, steps: Sequence[Step], ctx: Any, *, depth: int) -> list[StepResult]:
        results: list[StepResult] = []
        for step in steps:
            results.append(self._run_step(step, ctx, depth=depth))
        return results

    def _run_step(self, step: Step, ctx: Any, *, depth: int) -> StepResult:
        if step.enabled is not None and not step.enabled(ctx):
            logger.debug("Step disabled", extra={"step": step.title})
            return StepResult(title=step.title, status=StepStatus.DISABLED, depth=depth)

        handle = StepHandle(step.title)
        try:
            reason = step.skip(ctx) if step.skip is not None else None
            if reason:
                self._report(StepStatus.SKIPPED, handle.title, depth, reason)
                return StepResult(
                    title=handle.title, status=StepStatus.SKIPPED, depth=depth, reason=reason
                )

            logger.info("Step started", extra={"step": step.title, "depth": depth})
            children = step.task(ctx, handle)
        except StepFailed:
            raise
        except Exception as e:
            self._report(StepStatus.FAILED, handle.title, depth)
            logger.debug("Step failed", extra={"step": step.title}, exc_info=True)
            raise StepFailed(handle.title, e) from e

        if handle.skip_reason is not None:
            self._report(StepStatus.SKIPPED, handle.title, depth, handle.skip_reason)
            return StepResult(
                title=handle.title,
                status=StepStatus.SKIPPED,
                depth=depth,
                reason=handle.skip_reason,
            )

        child_results: list[StepResult] = []
        if children:
            self._write(f"{'  ' * depth}› {handle.title}")
            child_results = self._run_level(children, ctx, depth=depth + 1)
        else:
            self._report(StepStatus.DONE, handle.title, depth)
        logger.info("Step finished", extra={"step": handle.title, "depth": depth})
        return StepResult(
            title=handle.title, status=StepStatus.DONE, depth=depth, children=child_results
        )

    def _report(
        self, status: StepStatus, title: str, depth: int, reason: str | None = None
    ) -> None:
        line = f"{'  ' * depth}{_MARKERS[status]} {title}"
        if reason:
            line += f" [skipped: {reason}]"
        self._write(line)

    def _write(self, line: str) -> None:
        print(line, file=self._out, flush=True)
