"""API routes for listing and executing skills."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from server.state import get_session
from skillgraph.models.intent import Intent
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import SkillInfo
from skillgraph.sdk.dispatcher import IntentResult
from skillgraph.sdk.session import Session

router = APIRouter()


@router.get("/skills")
def list_skills(session: Session = Depends(get_session)) -> list[SkillInfo]:
    """list every registered skill."""
    return session.registry.list_skills()


@router.get("/skills/{skill_id}")
def describe_skill(skill_id: str, session: Session = Depends(get_session)) -> SkillInfo:
    """get the metadata and contracts of one skill."""
    info = session.registry.describe_skill(skill_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Skill not found: {skill_id}")
    return info


@router.post("/skills/{skill_id}/execute")
async def execute_skill(
    skill_id: str,
    params: dict[str, Any] | None = Body(default=None),
    session: Session = Depends(get_session),
) -> OperationResult:
    """run a skill against the session graph.

    Skill failures come back as ``success: false`` with status 200; only an
    unknown skill id is a 404.
    """
    if skill_id not in session.registry:
        raise HTTPException(status_code=404, detail=f"Skill not found: {skill_id}")
    return await session.registry.execute_skill(skill_id, params or {})


@router.post("/intents")
async def dispatch_intent(intent: Intent, session: Session = Depends(get_session)) -> dict[str, Any]:
    """run every stage of an intent in order."""
    outcome: IntentResult = await session.dispatcher.dispatch(intent)
    return {**outcome.model_dump(by_alias=True), "success": outcome.success}
