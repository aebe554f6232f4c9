"""Task-type inference from a session's summary and first prompt.

Inference is local; the text itself never leaves the machine.
"""

import re

from .models import TaskType


# Evaluated top to bottom, first match wins. Reordering changes results.
TASK_TYPE_RULES = [
    (TaskType.PLANNING, re.compile(
        r'\b(plan|architect|design|structure|scaffold|outline|strategy)\b', re.ASCII)),
    (TaskType.DEBUGGING, re.compile(
        r'\b(fix|bug|error|debug|issue|crash|broken|fail|exception)\b', re.ASCII)),
    (TaskType.REFACTORING, re.compile(
        r'\b(refactor|clean|improve|simplify|optimize|reorganize|restructure)\b', re.ASCII)),
    (TaskType.TESTING, re.compile(
        r'\b(test|spec|coverage|jest|vitest|mocha|pytest|unittest|e2e|integration)\b', re.ASCII)),
    (TaskType.REVIEW, re.compile(
        r'\b(review|check|verify|audit|examine|inspect|analyze)\b', re.ASCII)),
    (TaskType.DOCUMENTATION, re.compile(
        r'\b(doc|readme|comment|explain|document|jsdoc|tsdoc|api doc)\b', re.ASCII)),
    (TaskType.IMPLEMENTATION, re.compile(
        r'\b(implement|create|build|add|feature|develop|write|make|new)\b', re.ASCII)),
]

PLAN_MODE_PATTERN = re.compile(
    r'\b(plan|planning|architecture|design|strategy|outline)\b', re.ASCII)


def infer_task_type(summary: str, first_prompt: str) -> TaskType:
    """
    Infer the task type of a session.

    Both inputs may be empty. Returns ``TaskType.OTHER`` when no rule matches.
    """
    text = f"{summary or ''} {first_prompt or ''}".lower()

    for task_type, pattern in TASK_TYPE_RULES:
        if pattern.search(text):
            return task_type

    return TaskType.OTHER


def detects_plan_mode(summary: str) -> bool:
    """Check whether a session summary indicates plan-mode usage."""
    if not summary:
        return False
    return PLAN_MODE_PATTERN.search(summary.lower()) is not None
