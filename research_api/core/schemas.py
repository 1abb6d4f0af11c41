from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Values key used for options of a single-audience question
DEFAULT_SEGMENT_KEY = "overall"


# =========================
# Enums
# =========================
class Methodology(str, Enum):
    SURVEY = "survey"
    FOCUS_GROUP = "focus_group"
    COMPARISON = "comparison"
    HEATMAP = "heatmap"
    SENTIMENT = "sentiment"


class MethodologyType(str, Enum):
    QUANTITATIVE = "quantitative"
    QUALITATIVE = "qualitative"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"


class FollowUp(str, Enum):
    NEW = "new"
    UPDATE = "update"


class SelectionSource(str, Enum):
    BACKEND = "backend"
    COMMAND = "command"
    DEFAULT = "default"


class TurnStatus(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    CLARIFYING = "clarifying"
    PLANNING = "planning"
    EXECUTING = "executing"
    NORMALIZING = "normalizing"
    FALLING_BACK = "falling_back"
    COMPLETE = "complete"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


# =========================
# SELECTION
# =========================
class ResearchParameters(BaseModel):
    audience: str = "General Population"
    research_question: str
    segments: Optional[List[str]] = None
    sample_size: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class ClarificationRequest(BaseModel):
    missing_info: str = "More information needed"
    reason: Optional[str] = None
    suggestions: List[str] = []

    model_config = ConfigDict(frozen=True)


class MethodologySelection(BaseModel):
    """Either a chosen methodology with parameters, or a clarification request."""

    methodology: Optional[Methodology] = None
    parameters: Optional[ResearchParameters] = None
    clarification: Optional[ClarificationRequest] = None
    follow_up: FollowUp = FollowUp.NEW
    source: SelectionSource = SelectionSource.BACKEND

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_exactly_one_variant(self):
        has_methodology = self.methodology is not None and self.parameters is not None
        has_clarification = self.clarification is not None
        if has_methodology == has_clarification:
            raise ValueError(
                "Selection must carry either methodology+parameters or a clarification"
            )
        return self

    @property
    def is_clarification(self) -> bool:
        return self.clarification is not None


# =========================
# STUDY PLAN
# =========================
class StudyPlan(BaseModel):
    title: str
    methodology_id: str
    methodology_name: str
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    setup_bullets: List[str] = []
    expected_runtime_label: str

    model_config = ConfigDict(frozen=True)


# =========================
# ARTIFACT
# =========================
class CanonicalOption(BaseModel):
    label: str
    values: Dict[str, float]

    model_config = ConfigDict(frozen=True)


class QuestionResult(BaseModel):
    id: str
    title: str
    question_text: str
    respondent_count: int
    options: List[CanonicalOption]
    # Empty means single-audience
    segments: List[str] = []

    model_config = ConfigDict(frozen=True)


class Quote(BaseModel):
    text: str
    attribution: str = "Participant"

    model_config = ConfigDict(frozen=True)


class QualitativeTheme(BaseModel):
    id: str
    topic: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    summary: str = ""
    quotes: List[Quote] = []

    model_config = ConfigDict(frozen=True)


class Audience(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(frozen=True)


class Artifact(BaseModel):
    """Immutable output of one research turn (a "Canvas" in the UI)."""

    id: str
    title: str
    methodology_type: MethodologyType
    audience: Audience
    respondent_count: int
    abstract: str = ""
    questions: List[QuestionResult] = []
    themes: List[QualitativeTheme] = []
    study_plan: Optional[StudyPlan] = None
    created_at: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_content_matches_type(self):
        if self.methodology_type == MethodologyType.QUANTITATIVE:
            if not self.questions or self.themes:
                raise ValueError("Quantitative artifact needs questions and no themes")
        else:
            if not self.themes or self.questions:
                raise ValueError("Qualitative artifact needs themes and no questions")
        return self


# =========================
# PROCESS STEPS
# =========================
class ProcessStep(BaseModel):
    id: str
    label: str
    status: StepStatus = StepStatus.PENDING


# =========================
# REQUESTS / RESPONSES
# =========================
class ResearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=4000)
    prior_artifact: Optional[Artifact] = None


class ClassificationResponse(BaseModel):
    selection: MethodologySelection
    study_plan: Optional[StudyPlan] = None


class ResearchTurn(BaseModel):
    status: TurnStatus
    selection: MethodologySelection
    study_plan: Optional[StudyPlan] = None
    clarification: Optional[ClarificationRequest] = None
    artifact: Optional[Artifact] = None
    process_steps: List[str] = []
    explanation: str = ""
    used_fallback: bool = False
    logs: List[Dict[str, Any]] = []


class TitleRequest(BaseModel):
    query: str = Field(max_length=4000)


class TitleResponse(BaseModel):
    title: str
