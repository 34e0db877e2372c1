"""Sequential task lists.

A command is an explicit list of named steps, each with optional skip/enable
predicates, executed in order by `StepRunner`. Steps may expand into nested
child steps at run time.
"""

from aragon_cli.workflow.steps import Step, StepHandle, StepResult, StepRunner, StepStatus

__all__ = ["Step", "StepHandle", "StepResult", "StepRunner", "StepStatus"]
