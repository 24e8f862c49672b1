"""Render a graph snapshot as an external artifact (json, markdown or csv)."""

import csv
import io
import json
from typing import Any

from skillgraph.models.graph import GraphSnapshot

ARTIFACT_FORMATS = ("json", "markdown", "csv")
CSV_HEADER = ["id", "label", "type", "x", "y", "width", "height"]


def _blank(value: Any) -> Any:
    return "" if value is None else value


def render_markdown(snapshot: GraphSnapshot, manifest: dict[str, Any]) -> str:
    lines = [
        f"# Graph Artifact: {manifest.get('title') or 'Untitled'}",
        "",
        f"- Nodes: {len(snapshot.nodes)}",
        f"- Edges: {len(snapshot.edges)}",
        f"- Groups: {len(snapshot.groups)}",
        "",
        "## Nodes",
    ]
    for node in snapshot.nodes:
        lines.append(f"- **{node.label or node.id}** ({node.id}) - type: {node.type or 'default'}")
    lines.append("")
    lines.append("## Edges")
    for edge in snapshot.edges:
        lines.append(f"- {edge.id}: {edge.source} -> {edge.target} ({edge.type or 'child'})")
    return "\n".join(lines)


def render_csv(snapshot: GraphSnapshot) -> str:
    """One row per node with its geometry."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for node in snapshot.nodes:
        position = node.position
        writer.writerow([
            node.id,
            node.label or "",
            node.type or "default",
            _blank(position.x if position else None),
            _blank(position.y if position else None),
            _blank(node.width),
            _blank(node.height),
        ])
    return buffer.getvalue().rstrip("\n")


def render_json(
    snapshot: GraphSnapshot,
    manifest: dict[str, Any],
    generated_at: str,
    pretty: bool = True,
) -> str:
    document = {
        "manifest": manifest,
        **snapshot.to_payload(),
        "generatedAt": generated_at,
    }
    return json.dumps(document, indent=2 if pretty else None)


def compile_artifact(
    snapshot: GraphSnapshot,
    fmt: str = "json",
    manifest: dict[str, Any] | None = None,
    pretty: bool = True,
    generated_at: str = "",
) -> str:
    """Serialize ``snapshot`` in the requested format. Unknown formats fall back to json."""
    manifest = manifest or {}
    fmt = (fmt or "json").lower()
    if fmt == "markdown":
        return render_markdown(snapshot, manifest)
    if fmt == "csv":
        return render_csv(snapshot)
    return render_json(snapshot, manifest, generated_at, pretty)
