"""Automation runner supervision."""

from codialog.runner.supervisor import (
    ExecutionState,
    ExecutionSupervisor,
    SessionBusyError,
    check_runner_installed,
    create_execution_supervisor,
)

__all__ = [
    "ExecutionState",
    "ExecutionSupervisor",
    "SessionBusyError",
    "check_runner_installed",
    "create_execution_supervisor",
]
