"""Workflow analysis: skills, file references, action flows and meta-instructions.

All patterns are bilingual (Spanish + English). Aggregation only looks at the
most recent ``MAX_SESSIONS_TO_ANALYZE`` sessions.
"""

import re
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from .models import (
    AtReferenceData,
    MetaCognitionData,
    SessionWorkflowData,
    ToolCall,
    WorkflowMetrics,
)
from .parser import normalize_turns
from .stats import round_half_up
from .tasks import infer_task_type


MAX_SESSIONS_TO_ANALYZE = 50


# =============================================================================
# Skills / slash directives
# =============================================================================

# Line-start /name tokens with an inner hyphen or colon (executing-plans,
# superpowers:brainstorming). Plain /var or /ajax are path fragments.
SKILL_PATTERN = re.compile(r'^/(\w[\w:-]*[-:][\w:-]+)(?![/\w])', re.MULTILINE | re.ASCII)


def detect_skills(text: str) -> list[str]:
    """Detect slash-directive skills in a prompt, in order of appearance."""
    return SKILL_PATTERN.findall(text)


def detect_skills_from_tool_calls(tool_calls: Optional[Iterable[ToolCall]]) -> list[str]:
    """Skill names from ``Skill`` tool calls made by the assistant."""
    skills = []
    for call in tool_calls or []:
        if call.name != 'Skill':
            continue
        skill = (call.input or {}).get('skill')
        if skill:
            skills.append(skill)
    return skills


# =============================================================================
# @References and explicit paths
# =============================================================================

AT_REFERENCE_PATTERN = re.compile(r'@[\w/\\.-]+\.\w{1,5}\b', re.ASCII)

# "lee el archivo src/x.ts", "read the file src/x.ts", "check config.json"
EXPLICIT_PATH_PATTERN = re.compile(
    r'(?:en|lee|mira|sigue|ver|read|see|follow|check)\s+(?:el\s+|the\s+)?(?:archivo\s+|file\s+)?'
    r'[`"\']?([\w/\\.-]+\.\w{1,5})',
    re.IGNORECASE | re.ASCII,
)

PLAN_FILE_PATTERN = re.compile(
    r'plan/|progreso/|progress/|PLAN\.md|step-\d+|README\.md', re.IGNORECASE)

CONFIG_FILE_PATTERN = re.compile(
    r'\.env|config\.|tsconfig|package\.json|schema\.prisma', re.IGNORECASE)


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def detect_at_references(text: str) -> AtReferenceData:
    """Detect @mentions and natural-language file references in one prompt."""
    at_refs = AT_REFERENCE_PATTERN.findall(text)
    explicit_paths = [p for p in EXPLICIT_PATH_PATTERN.findall(text) if p]

    all_refs = _unique(at_refs + explicit_paths)

    return AtReferenceData(
        count=len(all_refs),
        unique_files=tuple(all_refs),
        has_plan_files=any(PLAN_FILE_PATTERN.search(r) for r in all_refs),
        has_config_files=any(CONFIG_FILE_PATTERN.search(r) for r in all_refs),
        explicit_paths_count=len(explicit_paths),
    )


def _merge_at_references(a: AtReferenceData, b: AtReferenceData) -> AtReferenceData:
    return AtReferenceData(
        count=a.count + b.count,
        unique_files=tuple(_unique(a.unique_files + b.unique_files)),
        has_plan_files=a.has_plan_files or b.has_plan_files,
        has_config_files=a.has_config_files or b.has_config_files,
        explicit_paths_count=a.explicit_paths_count + b.explicit_paths_count,
    )


# =============================================================================
# Actions and flow patterns
# =============================================================================

ACTION_PATTERNS = [
    ('plan', re.compile(
        r'/writing-plans|/brainstorm|planifica|diseña|plan:|approach|design', re.IGNORECASE)),
    ('implement', re.compile(
        r'/executing|implementa|crea|añade|modifica|create|add|build|implement', re.IGNORECASE)),
    ('verify', re.compile(
        r'/verification|verifica|comprueba|test|check|asegúrate|make sure', re.IGNORECASE)),
    ('review', re.compile(
        r'/requesting-code-review|/code-review|revisa|review|examina|examine', re.IGNORECASE)),
    ('test', re.compile(
        r'/test-driven|test|spec|vitest|jest|pytest', re.IGNORECASE)),
    ('debug', re.compile(
        r'/systematic-debugging|debug|error|fix|bug|arregla|soluciona', re.IGNORECASE)),
    ('explore', re.compile(
        r'explica|cómo funciona|qué es|qué hace|explain|what is|how does|how to', re.IGNORECASE)),
]

# First matching rule wins; the order is part of the metric definition.
FLOW_PATTERN_RULES = [
    ('full-cycle', {'plan', 'implement', 'verify', 'review'}),
    ('plan-and-verify', {'plan', 'implement', 'verify'}),
    ('tdd-flow', {'test', 'implement', 'verify'}),
    ('implement-and-review', {'implement', 'review'}),
    ('implement-only', {'implement'}),
    ('explore-only', {'explore'}),
]


def detect_actions(text: str) -> list[str]:
    """Action categories present in one prompt, in table order."""
    return [action for action, pattern in ACTION_PATTERNS if pattern.search(text)]


def detect_flow_pattern(actions: Iterable[str]) -> str:
    """Label a session's set of actions with its flow pattern."""
    present = set(actions)
    for label, required in FLOW_PATTERN_RULES:
        if required <= present:
            return label
    return 'unknown'


# =============================================================================
# Meta-instructions
# =============================================================================

META_PATTERNS = [
    ('defines_process', re.compile(
        r'primero.*(?:luego|después).*(?:finalmente|por último)|first.*then.*finally'
        r'|paso 1.*paso 2|step 1.*step 2',
        re.IGNORECASE | re.DOTALL)),
    ('sets_constraints', re.compile(
        r"no hagas commit|no modifiques otros|solo lee|no pushes|don't commit|read only"
        r"|just research|no toques",
        re.IGNORECASE)),
    ('requests_verification', re.compile(
        r'verifica (?:el|que|antes)|comprueba (?:el|que)|asegúrate de|confirm that|make sure'
        r'|double.?check',
        re.IGNORECASE)),
    ('defines_acceptance', re.compile(
        r'considéralo listo cuando|terminado cuando|done when|acceptance criteria|el checklist'
        r'|cumple con',
        re.IGNORECASE)),
]


def detect_meta_instructions(texts: Sequence[str]) -> MetaCognitionData:
    """Detect meta-instructions over the concatenation of a session's prompts."""
    all_text = ' '.join(texts)
    return MetaCognitionData(**{
        name: pattern.search(all_text) is not None
        for name, pattern in META_PATTERNS
    })


# =============================================================================
# Per-session classification
# =============================================================================

def classify_workflow(
    turns: Sequence[str],
    known_skills: Optional[Iterable[str]] = None,
) -> SessionWorkflowData:
    """
    Classify one session's normalized human turns.

    ``known_skills`` are skills already seen in tool calls; they are included
    even when the session has no text.
    """
    known_skills = list(known_skills or [])
    turns = [t for t in turns if t.strip()]
    if not turns:
        return SessionWorkflowData(skills=tuple(_unique(known_skills)))

    skills: list[str] = []
    for text in turns:
        skills.extend(detect_skills(text))
    skills.extend(known_skills)

    at_refs = AtReferenceData()
    actions: list[str] = []
    for text in turns:
        at_refs = _merge_at_references(at_refs, detect_at_references(text))
        actions.extend(detect_actions(text))

    return SessionWorkflowData(
        skills=tuple(_unique(skills)),
        at_references=at_refs,
        actions=tuple(_unique(actions)),
        flow_pattern=detect_flow_pattern(actions),
        meta_cognition=detect_meta_instructions(turns),
    )


def analyze_session_workflow(
    messages: Iterable,
    known_skills: Optional[Iterable[str]] = None,
) -> SessionWorkflowData:
    """Normalize a raw transcript and classify its workflow."""
    return classify_workflow(normalize_turns(messages), known_skills)


# =============================================================================
# Aggregation
# =============================================================================

def _is_directive(session: SessionWorkflowData) -> bool:
    meta = session.meta_cognition
    return bool(session.skills) or meta.defines_process or meta.sets_constraints


def aggregate_workflow(sessions: Sequence[SessionWorkflowData]) -> WorkflowMetrics:
    """
    Fold per-session workflow data into one ``WorkflowMetrics``.

    Only the last ``MAX_SESSIONS_TO_ANALYZE`` sessions are used, so callers
    should pass sessions oldest first.
    """
    limited = list(sessions)[-MAX_SESSIONS_TO_ANALYZE:]
    total = len(limited)
    if total == 0:
        return WorkflowMetrics()

    all_skills: list[str] = []
    unique_files: set[str] = set()
    at_refs_total = 0
    paths_total = 0
    actions_total = 0

    for s in limited:
        all_skills.extend(s.skills)
        at_refs_total += s.at_references.count
        unique_files.update(s.at_references.unique_files)
        paths_total += s.at_references.explicit_paths_count
        actions_total += len(s.actions)

    unique_skills = _unique(all_skills)
    directive_sessions = sum(1 for s in limited if _is_directive(s))

    return WorkflowMetrics(
        skills_used=tuple(unique_skills),
        skill_usage_count=len(all_skills),
        unique_skills_count=len(unique_skills),
        skills_per_session=round_half_up(len(all_skills) / total, 1),
        at_references_count=at_refs_total,
        at_references_per_session=round_half_up(at_refs_total / total, 1),
        unique_files_referenced=len(unique_files),
        uses_plan_files=any(s.at_references.has_plan_files for s in limited),
        uses_config_files=any(s.at_references.has_config_files for s in limited),
        paths_in_prompts=paths_total,
        sessions_with_plan=sum(1 for s in limited if 'plan' in s.actions),
        sessions_with_verification=sum(1 for s in limited if 'verify' in s.actions),
        sessions_with_review=sum(1 for s in limited if 'review' in s.actions),
        full_flow_sessions=sum(1 for s in limited if s.flow_pattern == 'full-cycle'),
        avg_actions_per_session=round_half_up(actions_total / total, 1),
        defines_process=any(s.meta_cognition.defines_process for s in limited),
        sets_constraints=any(s.meta_cognition.sets_constraints for s in limited),
        requests_verification=any(s.meta_cognition.requests_verification for s in limited),
        defines_acceptance_criteria=any(s.meta_cognition.defines_acceptance for s in limited),
        directive_rate=round_half_up(directive_sessions / total, 2),
        total_sessions_analyzed=total,
    )


def summarize_model_usage(sessions: Iterable[tuple[Optional[str], str, str]]) -> dict:
    """
    Roll up task-type diversity per model.

    Takes ``(model, summary, first_prompt)`` per session and returns
    ``{model: {"sessions", "taskTypes", "taskTypeDiversity"}}`` sorted by model.
    """
    counts: dict[str, int] = defaultdict(int)
    task_types: dict[str, set[str]] = defaultdict(set)

    for model, summary, first_prompt in sessions:
        key = model or 'unknown'
        counts[key] += 1
        task_types[key].add(infer_task_type(summary, first_prompt).value)

    return {
        model: {
            'sessions': counts[model],
            'taskTypes': sorted(task_types[model]),
            'taskTypeDiversity': len(task_types[model]),
        }
        for model in sorted(counts)
    }
