"""Skill descriptors, parameters and invocation context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillgraph.models.result import OperationResult

if TYPE_CHECKING:
    from skillgraph.adapters.event_bus import EventBus
    from skillgraph.adapters.script_runner import ScriptRunner
    from skillgraph.registry import SkillRegistry
    from skillgraph.store.graph_api import GraphAPI


class SkillCategory(str, Enum):
    """Skill families."""

    structural = "structural"
    layout = "layout"
    validation = "validation"
    transform = "transform"
    automation = "automation"


class MutationAction(str, Enum):
    """Mutation capabilities a skill may need from the manifest policy."""

    create = "create"
    update = "update"
    delete = "delete"


class SkillParams(BaseModel):
    """Base class for skill parameters.

    Accepts camelCase (from the editor) or snake_case keys; unknown keys are
    kept rather than rejected.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    dry_run: bool = False


class SkillContracts(BaseModel):
    """human-readable contract of a skill, exposed through describe_skill()."""

    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    preconditions: list[str] = Field(default_factory=list)
    postconditions: list[str] = Field(default_factory=list)
    forbidden: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SkillInfo(BaseModel):
    """Skill metadata without the handler."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    description: str
    category: SkillCategory
    supports_dry_run: bool
    contracts: SkillContracts


@dataclass
class SkillContext:
    """Everything a skill handler may touch during one invocation."""

    graph_api: GraphAPI
    now: datetime
    event_bus: EventBus | None = None
    script_runner: ScriptRunner | None = None
    registry: SkillRegistry | None = None
    extra: dict[str, Any] = field(default_factory=dict)


SkillHandler = Callable[
    [SkillContext, Any],
    Union[OperationResult, Awaitable[OperationResult]],
]
ActionResolver = Callable[[Any], "set[MutationAction] | frozenset[MutationAction]"]


@dataclass
class Skill:
    """A registered, named operation over the graph."""

    id: str
    title: str
    run: SkillHandler
    category: SkillCategory = SkillCategory.structural
    description: str = ""
    params_model: type[SkillParams] = SkillParams
    supports_dry_run: bool = True
    contracts: SkillContracts = field(default_factory=SkillContracts)
    # static capability set, or a resolver from parsed params to one
    requires: frozenset[MutationAction] | ActionResolver = frozenset()

    def required_actions(self, params: SkillParams) -> frozenset[MutationAction]:
        if callable(self.requires):
            return frozenset(self.requires(params))
        return frozenset(self.requires)

    def info(self) -> SkillInfo:
        return SkillInfo(
            id=self.id,
            title=self.title or self.id,
            description=self.description,
            category=self.category,
            supports_dry_run=self.supports_dry_run,
            contracts=self.contracts,
        )
