"""Prompt-quality classification and aggregation.

Each human turn is tested against a table of bilingual (Spanish + English)
patterns. A session flag is set when any of its turns matches; the aggregator
then folds many sessions into one ``PromptingMetrics``.
"""

import re
from typing import Iterable, Sequence

from .models import (
    PromptingMetrics,
    PromptLengthDistribution,
    SessionPromptingData,
)
from .parser import normalize_turns
from .stats import mean, percent, round_half_up


# =============================================================================
# Signal patterns
# =============================================================================

# (SessionPromptingData field, pattern). Add rows to extend language coverage.
PROMPT_SIGNALS = [
    # --- Structure ---
    ('has_structure', re.compile(r'^[\s]*[-*•]\s|^\d+\.\s|^#{1,3}\s', re.MULTILINE)),
    ('has_code_blocks', re.compile(r'```[\s\S]*?```|^ {4}\S', re.MULTILINE)),
    ('has_examples', re.compile(
        r'ejemplo:|por ejemplo|e\.g\.|for example|like this:|such as:', re.IGNORECASE)),
    ('has_formatting', re.compile(r'\*\*\w|\*\w|__\w|`\w.*`|\[.*\]\(', re.ASCII)),

    # --- Context ---
    ('has_file_refs', re.compile(r'[/\\][\w.-]+\.\w{1,5}\b', re.ASCII)),
    ('has_code_refs', re.compile(r'`[^`]+`|```')),
    ('has_urls', re.compile(r'https?://\S+')),

    # --- Advanced techniques ---
    ('has_role_prompt', re.compile(
        r'actúa como|eres un|compórtate como|act as|you are a|pretend|imagine you', re.IGNORECASE)),
    ('has_constraints', re.compile(
        r"no uses|sin usar|evita|no modifiques|must not|don't use|avoid|without using", re.IGNORECASE)),
    ('has_step_by_step', re.compile(
        r'paso a paso|step by step|primero.*luego|first.*then', re.IGNORECASE)),
    ('has_output_format', re.compile(
        r'formato:|devuelve.*json|en tabla|como lista|output as|return.*as|as a table|as a list|format:',
        re.IGNORECASE)),

    # --- Iteration ---
    # ^ anchors to the start of the turn only
    ('has_refinement', re.compile(
        r'^no[,.]|no quise|en realidad|cambia|en vez de|actually|I meant|instead of|change.*to',
        re.IGNORECASE)),
    ('has_follow_up', re.compile(
        r'también|y además|otra cosa|ahora|also|additionally|one more thing|now\s', re.IGNORECASE)),
]

# Length buckets: short < 100 <= medium < 500 <= long < 2000 <= detailed
SHORT_PROMPT_MAX = 100
MEDIUM_PROMPT_MAX = 500
LONG_PROMPT_MAX = 2000


# =============================================================================
# Per-session classification
# =============================================================================

def classify_prompting(turns: Sequence[str]) -> SessionPromptingData:
    """
    Classify one session's normalized human turns.

    An empty turn list yields the all-false, zero-length record.
    """
    turns = [t for t in turns if t.strip()]
    if not turns:
        return SessionPromptingData()

    flags = {
        name: any(pattern.search(turn) for turn in turns)
        for name, pattern in PROMPT_SIGNALS
    }
    return SessionPromptingData(
        prompt_lengths=tuple(len(turn) for turn in turns),
        turn_count=len(turns),
        **flags,
    )


def analyze_session_prompts(messages: Iterable) -> SessionPromptingData:
    """Normalize a raw transcript and classify its prompts."""
    return classify_prompting(normalize_turns(messages))


# =============================================================================
# Aggregation
# =============================================================================

def _length_distribution(lengths: Sequence[int]) -> PromptLengthDistribution:
    # Buckets are rounded independently and may not sum to 100
    return PromptLengthDistribution(
        short=percent(lengths, lambda n: n < SHORT_PROMPT_MAX),
        medium=percent(lengths, lambda n: SHORT_PROMPT_MAX <= n < MEDIUM_PROMPT_MAX),
        long=percent(lengths, lambda n: MEDIUM_PROMPT_MAX <= n < LONG_PROMPT_MAX),
        detailed=percent(lengths, lambda n: n >= LONG_PROMPT_MAX),
    )


def aggregate_prompting(sessions: Sequence[SessionPromptingData]) -> PromptingMetrics:
    """
    Fold per-session prompting data into one ``PromptingMetrics``.

    Rates are percentages of sessions; ``uses*``/``references*`` flags are
    true when any session has the signal. Lengths are pooled across all
    turns. With no sessions, or no turns at all, returns zeroed metrics.
    """
    if not sessions:
        return PromptingMetrics()

    all_lengths = [length for s in sessions for length in s.prompt_lengths]
    total_prompts = len(all_lengths)
    if total_prompts == 0:
        return PromptingMetrics()

    avg_length = sum(all_lengths) / total_prompts

    return PromptingMetrics(
        avg_prompt_length=int(round_half_up(avg_length)),
        max_prompt_length=max(all_lengths),
        prompt_length_distribution=_length_distribution(all_lengths),
        structured_prompt_rate=percent(sessions, lambda s: s.has_structure),
        uses_code_blocks=any(s.has_code_blocks for s in sessions),
        uses_examples=any(s.has_examples for s in sessions),
        uses_formatting=any(s.has_formatting for s in sessions),
        context_provision_rate=percent(
            sessions, lambda s: s.has_file_refs or s.has_code_refs or s.has_urls),
        references_files=any(s.has_file_refs for s in sessions),
        references_code=any(s.has_code_refs for s in sessions),
        references_urls=any(s.has_urls for s in sessions),
        avg_turns_before_resolution=mean([s.turn_count for s in sessions]),
        refinement_rate=percent(sessions, lambda s: s.has_refinement),
        follow_up_rate=percent(sessions, lambda s: s.has_follow_up),
        uses_role_prompting=any(s.has_role_prompt for s in sessions),
        uses_constraints=any(s.has_constraints for s in sessions),
        uses_step_by_step=any(s.has_step_by_step for s in sessions),
        specifies_output_format=any(s.has_output_format for s in sessions),
        total_prompts_analyzed=total_prompts,
    )
