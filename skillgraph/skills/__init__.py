"""Builtin skill families."""

from skillgraph.skills.automation import AUTOMATION_SKILLS
from skillgraph.skills.layout import LAYOUT_SKILLS
from skillgraph.skills.structural import STRUCTURAL_SKILLS
from skillgraph.skills.transformation import TRANSFORMATION_SKILLS
from skillgraph.skills.validation import VALIDATION_SKILLS

BUILTIN_SKILLS = [
    *STRUCTURAL_SKILLS,
    *LAYOUT_SKILLS,
    *VALIDATION_SKILLS,
    *TRANSFORMATION_SKILLS,
    *AUTOMATION_SKILLS,
]

__all__ = [
    "AUTOMATION_SKILLS",
    "BUILTIN_SKILLS",
    "LAYOUT_SKILLS",
    "STRUCTURAL_SKILLS",
    "TRANSFORMATION_SKILLS",
    "VALIDATION_SKILLS",
]
