"""Graph analysis: schema validators and artifact rendering."""

from skillgraph.analysis.artifact import ARTIFACT_FORMATS, compile_artifact
from skillgraph.analysis.graph_schema import (
    SchemaIssue,
    SchemaReport,
    validate_edges,
    validate_groups,
    validate_nodes,
)

__all__ = [
    "ARTIFACT_FORMATS",
    "compile_artifact",
    "SchemaIssue",
    "SchemaReport",
    "validate_edges",
    "validate_groups",
    "validate_nodes",
]
