"""Exceptions raised by the skill engine.

Ordinary domain failures are reported through OperationResult objects; these
exceptions cover programmer errors (bad registrations) and input problems that
a skill reports by raising, which the registry normalizes into a failed result.
"""


class SkillGraphError(Exception):
    """Base class for skillgraph errors."""
    pass


class SkillRegistrationError(SkillGraphError):
    """Raised when a skill descriptor cannot be registered."""
    pass


class SkillInputError(SkillGraphError):
    """Raised by a skill when a required input is missing or malformed."""
    pass


class ScriptRunnerError(SkillGraphError):
    """Raised when the external script runner cannot be reached or fails."""
    pass
