"""Data models for monitor-ia."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union


ANALYSIS_VERSION = '1.0'


class TaskType(str, Enum):
    """Closed set of task categories inferred per session."""
    PLANNING = "planning"
    IMPLEMENTATION = "implementation"
    DEBUGGING = "debugging"
    REFACTORING = "refactoring"
    TESTING = "testing"
    REVIEW = "review"
    DOCUMENTATION = "documentation"
    OTHER = "other"


@dataclass
class SessionMessage:
    """One turn of a raw transcript.

    ``content`` is either plain text or a list of typed content blocks
    (dicts with a ``type`` key and, for text blocks, a ``text`` key).
    """
    role: Literal["human", "assistant"]
    content: Union[str, list]


@dataclass
class ToolCall:
    """A tool invocation made by the assistant."""
    name: Optional[str] = None
    input: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SessionPromptingData:
    """Prompt-quality signals for one session (flags OR-ed across turns)."""
    prompt_lengths: tuple[int, ...] = ()
    has_structure: bool = False
    has_code_blocks: bool = False
    has_examples: bool = False
    has_formatting: bool = False
    has_file_refs: bool = False
    has_code_refs: bool = False
    has_urls: bool = False
    has_role_prompt: bool = False
    has_constraints: bool = False
    has_step_by_step: bool = False
    has_output_format: bool = False
    turn_count: int = 0
    has_refinement: bool = False
    has_follow_up: bool = False


@dataclass(frozen=True)
class AtReferenceData:
    """File references found in a session's prompts."""
    count: int = 0
    unique_files: tuple[str, ...] = ()
    has_plan_files: bool = False
    has_config_files: bool = False
    explicit_paths_count: int = 0


@dataclass(frozen=True)
class MetaCognitionData:
    """Meta-instruction signals over a whole session."""
    defines_process: bool = False
    sets_constraints: bool = False
    requests_verification: bool = False
    defines_acceptance: bool = False


@dataclass(frozen=True)
class SessionWorkflowData:
    """Orchestration signals for one session."""
    skills: tuple[str, ...] = ()
    at_references: AtReferenceData = field(default_factory=AtReferenceData)
    actions: tuple[str, ...] = ()
    flow_pattern: str = 'unknown'
    meta_cognition: MetaCognitionData = field(default_factory=MetaCognitionData)


@dataclass(frozen=True)
class PromptLengthDistribution:
    """Percentage of prompts per length bucket."""
    short: int = 0
    medium: int = 0
    long: int = 0
    detailed: int = 0


@dataclass(frozen=True)
class PromptingMetrics:
    """Prompt-quality metrics aggregated over a tool's sessions."""
    avg_prompt_length: int = 0
    max_prompt_length: int = 0
    prompt_length_distribution: PromptLengthDistribution = field(default_factory=PromptLengthDistribution)
    structured_prompt_rate: int = 0
    uses_code_blocks: bool = False
    uses_examples: bool = False
    uses_formatting: bool = False
    context_provision_rate: int = 0
    references_files: bool = False
    references_code: bool = False
    references_urls: bool = False
    avg_turns_before_resolution: float = 0
    refinement_rate: int = 0
    follow_up_rate: int = 0
    uses_role_prompting: bool = False
    uses_constraints: bool = False
    uses_step_by_step: bool = False
    specifies_output_format: bool = False
    total_prompts_analyzed: int = 0
    analysis_version: str = ANALYSIS_VERSION

    def to_dict(self) -> dict:
        """Serialize with the collector's camelCase keys."""
        dist = self.prompt_length_distribution
        return {
            'avgPromptLength': self.avg_prompt_length,
            'maxPromptLength': self.max_prompt_length,
            'promptLengthDistribution': {
                'short': dist.short,
                'medium': dist.medium,
                'long': dist.long,
                'detailed': dist.detailed,
            },
            'structuredPromptRate': self.structured_prompt_rate,
            'usesCodeBlocks': self.uses_code_blocks,
            'usesExamples': self.uses_examples,
            'usesFormatting': self.uses_formatting,
            'contextProvisionRate': self.context_provision_rate,
            'referencesFiles': self.references_files,
            'referencesCode': self.references_code,
            'referencesUrls': self.references_urls,
            'avgTurnsBeforeResolution': self.avg_turns_before_resolution,
            'refinementRate': self.refinement_rate,
            'followUpRate': self.follow_up_rate,
            'usesRolePrompting': self.uses_role_prompting,
            'usesConstraints': self.uses_constraints,
            'usesStepByStep': self.uses_step_by_step,
            'specifiesOutputFormat': self.specifies_output_format,
            'totalPromptsAnalyzed': self.total_prompts_analyzed,
            'analysisVersion': self.analysis_version,
        }


@dataclass(frozen=True)
class WorkflowMetrics:
    """Workflow metrics aggregated over the most recent sessions."""
    skills_used: tuple[str, ...] = ()
    skill_usage_count: int = 0
    unique_skills_count: int = 0
    skills_per_session: float = 0
    at_references_count: int = 0
    at_references_per_session: float = 0
    unique_files_referenced: int = 0
    uses_plan_files: bool = False
    uses_config_files: bool = False
    paths_in_prompts: int = 0
    sessions_with_plan: int = 0
    sessions_with_verification: int = 0
    sessions_with_review: int = 0
    full_flow_sessions: int = 0
    avg_actions_per_session: float = 0
    defines_process: bool = False
    sets_constraints: bool = False
    requests_verification: bool = False
    defines_acceptance_criteria: bool = False
    directive_rate: float = 0
    total_sessions_analyzed: int = 0
    analysis_version: str = ANALYSIS_VERSION

    def to_dict(self) -> dict:
        """Serialize with the collector's camelCase keys."""
        return {
            'skillsUsed': list(self.skills_used),
            'skillUsageCount': self.skill_usage_count,
            'uniqueSkillsCount': self.unique_skills_count,
            'skillsPerSession': self.skills_per_session,
            'atReferencesCount': self.at_references_count,
            'atReferencesPerSession': self.at_references_per_session,
            'uniqueFilesReferenced': self.unique_files_referenced,
            'usesPlanFiles': self.uses_plan_files,
            'usesConfigFiles': self.uses_config_files,
            'pathsInPrompts': self.paths_in_prompts,
            'sessionsWithPlan': self.sessions_with_plan,
            'sessionsWithVerification': self.sessions_with_verification,
            'sessionsWithReview': self.sessions_with_review,
            'fullFlowSessions': self.full_flow_sessions,
            'avgActionsPerSession': self.avg_actions_per_session,
            'definesProcess': self.defines_process,
            'setsConstraints': self.sets_constraints,
            'requestsVerification': self.requests_verification,
            'definesAcceptanceCriteria': self.defines_acceptance_criteria,
            'directiveRate': self.directive_rate,
            'totalSessionsAnalyzed': self.total_sessions_analyzed,
            'analysisVersion': self.analysis_version,
        }


@dataclass
class SessionInfo:
    """Summary of one transcript file, as read from disk."""
    session_id: str
    messages: list[SessionMessage] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    models_used: list[str] = field(default_factory=list)
    total_tokens: int = 0
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    summary: str = ''
    first_prompt: str = ''


@dataclass
class SessionDetail:
    """Per-session record destined for the encrypted payload."""
    date: str
    task_type: TaskType
    summary: str
    model: Optional[str]
    turns: int
    plan_mode: bool

    def to_dict(self) -> dict:
        return {
            'date': self.date,
            'taskType': self.task_type.value,
            'summary': self.summary,
            'model': self.model,
            'turns': self.turns,
            'planMode': self.plan_mode,
        }


@dataclass
class CollectorResult:
    """Metrics gathered for one tool."""
    tool: str
    metrics: dict
    collected_at: str

    def to_dict(self) -> dict:
        return {
            'tool': self.tool,
            'metrics': self.metrics,
            'collectedAt': self.collected_at,
        }
