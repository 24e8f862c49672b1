"""Result object shared by GraphAPI mutators and skills."""

from typing import Any

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """Outcome of a graph operation or a skill invocation.

    ``data`` carries the skill-specific payload (plans, summaries, validation
    findings); ``error`` is set when ``success`` is False.
    """

    success: bool
    data: Any = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, warnings: list[str] | None = None) -> "OperationResult":
        return cls(success=True, data=data, warnings=list(warnings or []))

    @classmethod
    def fail(cls, error: str | None = None, data: Any = None) -> "OperationResult":
        return cls(success=False, error=error, data=data)
