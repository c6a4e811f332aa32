"""Task execution engine: conversion, step plans, and the runner."""

from bioscfg.tasks.converter import from_envelope, to_envelope
from bioscfg.tasks.plans import TaskPlan, build_plan
from bioscfg.tasks.runner import TaskRunner, TaskRunResult
from bioscfg.tasks.status import StepStatus, TaskStatus
from bioscfg.tasks.steps import Step, StepContext

__all__ = [
    "Step",
    "StepContext",
    "StepStatus",
    "TaskPlan",
    "TaskRunResult",
    "TaskRunner",
    "TaskStatus",
    "build_plan",
    "from_envelope",
    "to_envelope",
]
