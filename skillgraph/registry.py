"""Skill registry and dispatch.

``execute_skill`` is the only way skills run. Per call it:

1. looks the skill up (unknown id -> failed result);
2. refuses dry runs on skills that do not support them;
3. decodes the raw params into the skill's params model;
4. checks the manifest policy against the skill's required actions;
5. runs the handler with a fresh SkillContext;
6. turns any exception into a failed result.

Nothing is kept between calls except the registered descriptors.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ValidationError

from skillgraph.adapters.event_bus import EventBus
from skillgraph.adapters.script_runner import ScriptRunner
from skillgraph.errors import SkillInputError, SkillRegistrationError
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import Skill, SkillContext, SkillInfo
from skillgraph.policy.manifest_policy import authorize
from skillgraph.skills import BUILTIN_SKILLS
from skillgraph.store.graph_api import GraphAPI

logger = logging.getLogger(__name__)


def _raw_params(params: dict | BaseModel | None) -> dict[str, Any]:
    if params is None:
        return {}
    if isinstance(params, BaseModel):
        return params.model_dump(by_alias=True)
    return dict(params)


def _wants_dry_run(raw: dict[str, Any]) -> bool:
    return bool(raw.get("dryRun") or raw.get("dry_run"))


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ()))
        parts.append(f"{location}: {detail.get('msg')}" if location else str(detail.get("msg")))
    return "; ".join(parts)


def _as_result(value: Any) -> OperationResult:
    if isinstance(value, OperationResult):
        return value
    if isinstance(value, dict) and "success" in value:
        return OperationResult.model_validate(value)
    return OperationResult(success=bool(value))


class SkillRegistry:
    """Holds skill descriptors and dispatches invocations against one GraphAPI."""

    def __init__(
        self,
        graph_api: GraphAPI,
        event_bus: EventBus | None = None,
        script_runner: ScriptRunner | None = None,
        **extra: Any,
    ) -> None:
        self.graph_api = graph_api
        self.event_bus = event_bus
        self.script_runner = script_runner
        self.extra = extra
        self._skills: dict[str, Skill] = {}

    def register(self, skill: Skill) -> None:
        if not isinstance(skill.id, str) or not skill.id:
            raise SkillRegistrationError("Skill definitions must include a non-empty id")
        if skill.id in self._skills:
            raise SkillRegistrationError(f'Skill "{skill.id}" registered more than once')
        if not callable(skill.run):
            raise SkillRegistrationError(f'Skill "{skill.id}" is missing a run() handler')
        self._skills[skill.id] = skill

    def register_all(self, skills: Iterable[Skill]) -> None:
        for skill in skills:
            self.register(skill)

    def __contains__(self, skill_id: str) -> bool:
        return skill_id in self._skills

    def skill_ids(self) -> list[str]:
        return list(self._skills)

    def list_skills(self) -> list[SkillInfo]:
        return [skill.info() for skill in self._skills.values()]

    def describe_skill(self, skill_id: str) -> SkillInfo | None:
        skill = self._skills.get(skill_id)
        return skill.info() if skill else None

    async def execute_skill(
        self,
        skill_id: str,
        params: dict | BaseModel | None = None,
        **extra: Any,
    ) -> OperationResult:
        skill = self._skills.get(skill_id)
        if skill is None:
            return OperationResult.fail(f'Unknown skill "{skill_id}"')

        raw = _raw_params(params)
        if _wants_dry_run(raw) and not skill.supports_dry_run:
            return OperationResult.fail(f'Skill "{skill_id}" does not support dry runs')

        try:
            parsed = skill.params_model.model_validate(raw)
        except ValidationError as e:
            return OperationResult.fail(
                f'Invalid parameters for skill "{skill_id}": {_describe_validation_error(e)}'
            )

        decision = authorize(self.graph_api, skill.required_actions(parsed))
        if decision.error:
            logger.info("skill %s rejected by manifest policy: %s", skill_id, decision.error)
            return OperationResult.fail(decision.error)

        context = SkillContext(
            graph_api=self.graph_api,
            now=datetime.now(timezone.utc),
            event_bus=self.event_bus,
            script_runner=self.script_runner,
            registry=self,
            extra={**self.extra, **extra},
        )

        try:
            outcome = skill.run(context, parsed)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            result = _as_result(outcome)
        except SkillInputError as e:
            logger.warning("skill %s rejected its input: %s", skill_id, e)
            return OperationResult.fail(str(e) or f'Skill "{skill_id}" failed')
        except Exception as e:
            logger.exception("skill %s failed", skill_id)
            return OperationResult.fail(str(e) or f'Skill "{skill_id}" failed')

        if decision.warning and decision.warning not in result.warnings:
            result.warnings.append(decision.warning)
        return result


def create_registry(
    graph_api: GraphAPI,
    event_bus: EventBus | None = None,
    script_runner: ScriptRunner | None = None,
    **extra: Any,
) -> SkillRegistry:
    """Registry with every builtin skill registered."""
    registry = SkillRegistry(
        graph_api,
        event_bus=event_bus,
        script_runner=script_runner,
        **extra,
    )
    registry.register_all(BUILTIN_SKILLS)
    return registry
