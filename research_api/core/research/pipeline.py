# research_api/core/research/pipeline.py
"""
PIPELINE MODULE - Orchestration of one research turn

Purpose:
    Run classify → plan → execute in order, keep a step log, and always
    come back with something the caller can show.

Turn states:
    idle → classifying → clarifying                                (ends the turn)
                       → planning → executing → normalizing  → complete
                                              → falling_back → complete

Each stage falls back at most once; there are no retries. At most two
backend calls happen per turn (classification and generation), and they
share one TurnBudget of BACKEND_DEADLINE_SECONDS: generation only gets
what classification left over.
"""

import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from research_api.core.config import settings
from research_api.core.research.backend import ResearchBackend, TurnBudget
from research_api.core.research.classify import (
    DEFAULT_AUDIENCE,
    classify_query,
    default_selection,
)
from research_api.core.research.execute import execute_research
from research_api.core.research.fallback import fallback_survey
from research_api.core.research.plan import build_study_plan
from research_api.core.research.process_steps import get_process_steps
from research_api.core.schemas import (
    Artifact,
    FollowUp,
    MethodologySelection,
    MethodologyType,
    ResearchTurn,
    SelectionSource,
    TurnStatus,
)

# Configure logging for the research pipeline
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

LogSink = Callable[[Dict[str, Any]], None]


class ResearchLogger:
    """Step log for one research turn."""

    def __init__(self, sink: Optional[LogSink] = None):
        """
        Args:
            sink: Optional callable receiving every log entry as a dict.
                A sink that raises is ignored; the turn carries on.
        """
        self.sink = sink
        self.start_time = datetime.now()
        self.logs: List[Dict[str, Any]] = []

    def log(self, step: str, message: str, level: str = "info"):
        """Record an entry, mirror it to the module logger and the sink."""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "step": step,
            "message": message,
            "level": level,
            "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
        }
        self.logs.append(entry)

        if level == "error":
            logger.error(f"{step}: {message}")
        elif level == "warning":
            logger.warning(f"{step}: {message}")
        else:
            logger.info(f"{step}: {message}")

        if self.sink is not None:
            try:
                self.sink(dict(entry))
            except Exception as e:
                logger.debug(f"Log sink failed: {e}")

    def get_logs(self) -> List[Dict[str, Any]]:
        return self.logs


def results_introduction(artifact: Artifact) -> str:
    """One sentence introducing the results to the user."""
    audience = artifact.audience.name
    count = artifact.respondent_count
    if artifact.methodology_type == MethodologyType.QUALITATIVE:
        return (
            f"Here's what {count} participants from {audience} shared. "
            "The key themes reveal some interesting patterns."
        )
    return f"Based on responses from {count} people in {audience}, here are the key findings."


def _finalize(
    artifact: Artifact,
    selection: MethodologySelection,
    prior_artifact: Optional[Artifact],
    study_plan,
) -> Artifact:
    """Attach the plan, and reuse the prior id for an update follow-up."""
    update: Dict[str, Any] = {"study_plan": study_plan}
    if selection.follow_up == FollowUp.UPDATE and prior_artifact is not None:
        update["id"] = prior_artifact.id
    return artifact.model_copy(update=update)


async def run_research_turn(
    query: str,
    prior_artifact: Optional[Artifact] = None,
    backend: Optional[ResearchBackend] = None,
    log_sink: Optional[LogSink] = None,
    rng: Optional[random.Random] = None,
) -> ResearchTurn:
    """
    Run one complete research turn.

    Args:
        query: The user's free-text research question
        prior_artifact: The artifact currently open, for follow-ups
        backend: Generative backend, or None to run offline
        log_sink: Optional structured-log receiver
        rng: Random source for the legacy comparison fan-out

    Returns:
        ResearchTurn with either a clarification or a complete artifact
    """
    research_logger = ResearchLogger(log_sink)
    budget = TurnBudget(settings.BACKEND_DEADLINE_SECONDS)
    status = TurnStatus.IDLE

    try:
        status = TurnStatus.CLASSIFYING
        research_logger.log("classify", f"Selecting methodology for: {query!r}")
        selection = await classify_query(
            query, prior_artifact, backend, budget.remaining()
        )

        if selection.is_clarification:
            status = TurnStatus.CLARIFYING
            research_logger.log("classify", "Backend asked for clarification")
            return ResearchTurn(
                status=status,
                selection=selection,
                clarification=selection.clarification,
                explanation=selection.clarification.missing_info,
                logs=research_logger.get_logs(),
            )

        research_logger.log(
            "classify",
            f"Selected {selection.methodology.value} ({selection.source.value}) "
            f"for {selection.parameters.audience}",
        )

        status = TurnStatus.PLANNING
        study_plan = build_study_plan(selection)
        process_steps = get_process_steps(selection.methodology)
        research_logger.log("plan", f"Study plan: {study_plan.title}")

        status = TurnStatus.EXECUTING
        # Explicit commands never touch the backend
        exec_backend = None if selection.source == SelectionSource.COMMAND else backend
        remaining = budget.remaining()
        if exec_backend is not None and remaining <= 0:
            research_logger.log("execute", "Turn budget spent during classification", "warning")
        result = await execute_research(selection, query, exec_backend, rng, remaining)

        if result.used_fallback:
            status = TurnStatus.FALLING_BACK
            research_logger.log(
                "execute", f"Fallback artifact used: {result.failure}", "warning"
            )
        else:
            status = TurnStatus.NORMALIZING
            research_logger.log("execute", "Backend artifact normalized")

        artifact = _finalize(result.artifact, selection, prior_artifact, study_plan)
        status = TurnStatus.COMPLETE
        research_logger.log("complete", f"Artifact {artifact.id} ready")

        return ResearchTurn(
            status=status,
            selection=selection,
            study_plan=study_plan,
            artifact=artifact,
            process_steps=process_steps,
            explanation=results_introduction(artifact),
            used_fallback=result.used_fallback,
            logs=research_logger.get_logs(),
        )

    except Exception as e:
        research_logger.log(status.value, f"Turn failed: {e}", "error")
        selection = default_selection(query)
        study_plan = build_study_plan(selection)
        artifact = fallback_survey(DEFAULT_AUDIENCE, query).model_copy(
            update={"study_plan": study_plan}
        )
        return ResearchTurn(
            status=TurnStatus.COMPLETE,
            selection=selection,
            study_plan=study_plan,
            artifact=artifact,
            process_steps=get_process_steps(selection.methodology),
            explanation=results_introduction(artifact),
            used_fallback=True,
            logs=research_logger.get_logs(),
        )


async def run_research(
    query: str,
    prior_artifact: Optional[Artifact] = None,
    backend: Optional[ResearchBackend] = None,
    log_sink: Optional[LogSink] = None,
) -> Artifact:
    """
    Run a research turn and return only the artifact.

    A clarification turn has no artifact of its own; this entry point
    answers it with the offline default survey, so callers always get one.
    """
    turn = await run_research_turn(query, prior_artifact, backend, log_sink)
    if turn.artifact is not None:
        return turn.artifact

    selection = default_selection(query)
    return fallback_survey(DEFAULT_AUDIENCE, query).model_copy(
        update={"study_plan": build_study_plan(selection)}
    )
