from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from research_api.core import schemas
from research_api.core.research import classify, pipeline, plan, process_steps, titles
from research_api.core.research.backend import ResearchBackend

router = APIRouter(prefix="/research", tags=["Research"])


# The backend is created in the app lifespan; absent means offline
async def get_backend(request: Request) -> Optional[ResearchBackend]:
    return getattr(request.app.state, "backend", None)


backend_dep = Annotated[Optional[ResearchBackend], Depends(get_backend)]


def _require_query(query: str) -> str:
    if not query.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Query must not be empty")
    return query.strip()


@router.post("", response_model=schemas.ResearchTurn)
async def run_research_turn(payload: schemas.ResearchRequest, backend: backend_dep):
    """
    Run one research turn: classify -> plan -> execute.
    Returns either a clarification request or a finished artifact.
    """
    query = _require_query(payload.query)
    return await pipeline.run_research_turn(query, payload.prior_artifact, backend)


@router.post("/artifact", response_model=schemas.Artifact)
async def run_research(payload: schemas.ResearchRequest, backend: backend_dep):
    """Run a research turn and return only the artifact (always present)."""
    query = _require_query(payload.query)
    return await pipeline.run_research(query, payload.prior_artifact, backend)


@router.post("/classify", response_model=schemas.ClassificationResponse)
async def classify_query(payload: schemas.ResearchRequest, backend: backend_dep):
    """Pick a methodology without running the research."""
    query = _require_query(payload.query)
    selection = await classify.classify_query(query, payload.prior_artifact, backend)
    study_plan = None if selection.is_clarification else plan.build_study_plan(selection)
    return {"selection": selection, "study_plan": study_plan}


@router.post("/plan", response_model=schemas.StudyPlan)
async def build_plan(selection: schemas.MethodologySelection):
    """Confirmation summary for a chosen methodology."""
    if selection.is_clarification:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, "A clarification request has no study plan"
        )
    return plan.build_study_plan(selection)


@router.get("/process-steps/{methodology}", response_model=List[str])
async def get_process_steps(methodology: str):
    """Progress labels for a methodology (unknown names get the survey list)."""
    return process_steps.get_process_steps(methodology)


@router.post("/title", response_model=schemas.TitleResponse)
async def generate_title(payload: schemas.TitleRequest, backend: backend_dep):
    """Short title for a conversation started with this query."""
    title = await titles.generate_conversation_title(payload.query, backend)
    return {"title": title}
