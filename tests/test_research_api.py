import pytest
from httpx import AsyncClient

from research_api.core.research.backend import ToolInvocation


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert "Synthetic Research API" in response.json()["message"]


@pytest.mark.asyncio
async def test_research_turn_offline(client: AsyncClient):
    """No backend configured still gives a finished survey"""
    response = await client.post("/research", json={"query": "coffee"})
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "complete"
    assert data["used_fallback"] is True
    assert data["artifact"]["methodology_type"] == "quantitative"
    assert len(data["artifact"]["questions"]) == 3
    assert data["artifact"]["study_plan"]["methodology_id"] == "survey"
    assert data["process_steps"]


@pytest.mark.asyncio
async def test_research_turn_with_backend(client: AsyncClient, api_backend, make_backend, focus_group_payload):
    api_backend["backend"] = make_backend(
        choice=ToolInvocation(
            name="run_focus_group",
            input={"audience": "Working professionals", "research_question": "Why do Mondays hurt?"},
        ),
        payloads={"generate_focus_group_results": focus_group_payload},
    )
    response = await client.post("/research", json={"query": "why do people hate mondays"})
    assert response.status_code == 200

    data = response.json()
    assert data["used_fallback"] is False
    assert data["selection"]["methodology"] == "focus_group"
    assert data["artifact"]["title"] == "Why Mondays Hurt"
    assert [t["sentiment"] for t in data["artifact"]["themes"]] == ["negative", "positive", "neutral"]
    assert data["explanation"].startswith("Here's what 10 participants")


@pytest.mark.asyncio
async def test_research_turn_clarification(client: AsyncClient, api_backend, make_backend):
    api_backend["backend"] = make_backend(
        choice=ToolInvocation(
            name="ask_clarification",
            input={"missing_info": "What would you like to research?", "suggestions": ["Coffee habits"]},
        )
    )
    response = await client.post("/research", json={"query": "hello"})
    data = response.json()
    assert data["status"] == "clarifying"
    assert data["artifact"] is None
    assert data["clarification"]["suggestions"] == ["Coffee habits"]

    artifact = await client.post("/research/artifact", json={"query": "hello"})
    assert artifact.status_code == 200
    assert artifact.json()["questions"]


@pytest.mark.asyncio
async def test_follow_up_update_keeps_artifact_id(client: AsyncClient, api_backend, make_backend, survey_payload):
    first = await client.post("/research/artifact", json={"query": "coffee"})
    prior = first.json()

    api_backend["backend"] = make_backend(
        choice=ToolInvocation(
            name="run_survey",
            input={"audience": "Boomers", "research_question": "coffee", "follow_up": "update"},
        ),
        payloads={"generate_survey_results": survey_payload},
    )
    response = await client.post(
        "/research/artifact", json={"query": "same for boomers", "prior_artifact": prior}
    )
    assert response.status_code == 200
    assert response.json()["id"] == prior["id"]


@pytest.mark.asyncio
async def test_classify_endpoint(client: AsyncClient):
    response = await client.post("/research/classify", json={"query": "#focus-group pets"})
    assert response.status_code == 200

    data = response.json()
    assert data["selection"]["methodology"] == "focus_group"
    assert data["selection"]["source"] == "command"
    assert data["study_plan"]["methodology_id"] == "focus-group"


@pytest.mark.asyncio
async def test_plan_endpoint(client: AsyncClient):
    selection = {
        "methodology": "comparison",
        "parameters": {
            "audience": "Pet owners",
            "research_question": "cats or dogs",
            "segments": ["Cats", "Dogs"],
        },
    }
    response = await client.post("/research/plan", json=selection)
    assert response.status_code == 200
    data = response.json()
    assert data["variant_id"] == "comparison"
    assert "Segments: Cats, Dogs" in data["setup_bullets"]


@pytest.mark.asyncio
async def test_plan_endpoint_rejects_clarification(client: AsyncClient):
    response = await client.post(
        "/research/plan", json={"clarification": {"missing_info": "What topic?"}}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_process_steps_endpoint(client: AsyncClient):
    heatmap = await client.get("/research/process-steps/heatmap")
    unknown = await client.get("/research/process-steps/message_testing")
    survey = await client.get("/research/process-steps/survey")

    assert heatmap.status_code == 200
    assert heatmap.json() != survey.json()
    assert unknown.json() == survey.json()

    by_plan_id = await client.get("/research/process-steps/focus-group")
    assert by_plan_id.json()[0] == "Designing discussion guide"


@pytest.mark.asyncio
async def test_title_endpoint(client: AsyncClient, api_backend, make_backend):
    offline = await client.post("/research/title", json={"query": "@gen-z coffee habits"})
    assert offline.json() == {"title": "coffee habits"}

    api_backend["backend"] = make_backend(title="Gen Z Coffee Habits")
    online = await client.post("/research/title", json={"query": "@gen-z coffee habits"})
    assert online.json() == {"title": "Gen Z Coffee Habits"}


@pytest.mark.asyncio
async def test_blank_query_rejected(client: AsyncClient):
    response = await client.post("/research", json={"query": "   "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalid_payload(client: AsyncClient):
    """Missing or empty query fails validation"""
    missing = await client.post("/research", json={})
    empty = await client.post("/research/artifact", json={"query": ""})
    assert missing.status_code == 422
    assert empty.status_code == 422
