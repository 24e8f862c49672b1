"""Intent dispatch: run the stages of an intent through the registry.

An intent maps to one or more skill invocations (stages) that run one after
another. Each new dispatch replaces the dispatcher's cancellation token and
cancels the previous one. Tokens are only checked between stages, so a stage
that has started always runs to completion; cancelling only stops the next
stage from starting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillgraph.adapters.event_bus import EventBus
from skillgraph.models.intent import SKILL_EXECUTED, Intent, IntentStage
from skillgraph.models.result import OperationResult
from skillgraph.registry import SkillRegistry

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag for one dispatch."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class StageResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    skill_id: str
    result: OperationResult


class IntentResult(BaseModel):
    """Outcome of one dispatched intent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: str
    stages: list[StageResult] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.cancelled and all(stage.result.success for stage in self.stages)


class IntentDispatcher:
    """Runs intents against a registry, one stage at a time."""

    def __init__(self, registry: SkillRegistry, event_bus: EventBus | None = None) -> None:
        self.registry = registry
        self.event_bus = event_bus if event_bus is not None else registry.event_bus
        self._token: CancellationToken | None = None

    @property
    def token(self) -> CancellationToken | None:
        """Token of the most recent dispatch."""
        return self._token

    def cancel(self) -> None:
        """Stop the current intent before its next stage."""
        if self._token is not None:
            self._token.cancel()

    def _begin(self) -> CancellationToken:
        self.cancel()
        self._token = CancellationToken()
        return self._token

    def _emit_executed(self, intent: Intent, skill_id: str, result: OperationResult) -> None:
        if self.event_bus is None:
            return
        self.event_bus.emit(SKILL_EXECUTED, {
            "skillId": skill_id,
            "intent": intent.kind,
            "success": result.success,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def dispatch(self, intent: Intent | dict[str, Any]) -> IntentResult:
        """Run every stage of ``intent`` in order.

        Stops at the first failed stage, or before the next stage once the
        token has been cancelled (by ``cancel()`` or by a newer dispatch).
        """
        if not isinstance(intent, Intent):
            intent = Intent.model_validate(intent)
        token = self._begin()
        outcome = IntentResult(kind=intent.kind)

        for position, stage in enumerate(intent.stages):
            if token.cancelled:
                logger.info(
                    "intent %s cancelled before stage %d (%s)", intent.kind, position, stage.skill_id
                )
                outcome.cancelled = True
                break
            result = await self.registry.execute_skill(stage.skill_id, stage.params)
            outcome.stages.append(StageResult(skill_id=stage.skill_id, result=result))
            self._emit_executed(intent, stage.skill_id, result)
            if not result.success:
                break

        return outcome

    async def run_skill(self, skill_id: str, params: dict[str, Any] | None = None) -> OperationResult:
        """Dispatch a single-stage intent and return its stage result."""
        stage = IntentStage(skill_id=skill_id, params=params or {})
        outcome = await self.dispatch(Intent(kind=skill_id, stages=[stage]))
        if not outcome.stages:
            return OperationResult.fail("Intent cancelled before it started")
        return outcome.stages[0].result
