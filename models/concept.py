"""Concept graph models: a topic expanded into ordered concepts and their pages."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from models.enums import ConceptKind, EdgeType, PageKind, coerce_enum

logger = logging.getLogger(__name__)


@dataclass
class TopicContext:
    """Where a topic sits in the curriculum; every concept prompt carries it."""
    title: str
    description: str = ""
    subject: str = ""
    section: str = ""
    section_description: str = ""

    def prompt_line(self) -> str:
        return (
            f"Subject={self.subject or '-'}; Section={self.section or '-'}; "
            f"Topic={self.title}; TopicDescription={self.description or '-'}"
        )


def _skills(value) -> list[str]:
    """Skills arrive as a list or as one comma-separated string."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(s).strip() for s in value if str(s).strip()]


@dataclass
class ConceptNode:
    id: str
    title: str
    kind: ConceptKind = ConceptKind.CORE
    skills: list[str] = field(default_factory=list)
    depth: int = 0

    @classmethod
    def from_dict(cls, data: dict, position: int = 1) -> "ConceptNode":
        data = data if isinstance(data, dict) else {}
        try:
            depth = int(data.get("depth") or 0)
        except (TypeError, ValueError):
            depth = 0
        return cls(
            id=str(data.get("id") or "").strip() or f"k{position}",
            title=str(data.get("title") or "").strip() or f"Concept {position}",
            kind=coerce_enum(ConceptKind, data.get("kind"), ConceptKind.CORE),
            skills=_skills(data.get("skills")),
            depth=max(0, depth),
        )

    def to_dict(self) -> dict:
        data = {"id": self.id, "title": self.title, "kind": self.kind.value, "depth": self.depth}
        if self.skills:
            data["skills"] = list(self.skills)
        return data


@dataclass
class ConceptEdge:
    source: str
    target: str
    type: EdgeType = EdgeType.PREREQ

    @property
    def orders(self) -> bool:
        """True for the relations that constrain concept depth."""
        return self.type in (EdgeType.PREREQ, EdgeType.EXTENDS)

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.target, "type": self.type.value}


@dataclass
class ConceptPlan:
    """Concept nodes plus typed edges between them.

    ``from_dict`` drops edges with an unknown type; endpoints are checked by
    ``tools.concept_graph.validate_concept_plan``.
    """
    nodes: list[ConceptNode] = field(default_factory=list)
    edges: list[ConceptEdge] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ConceptPlan":
        data = data if isinstance(data, dict) else {}
        raw_nodes = data.get("nodes") if isinstance(data.get("nodes"), list) else []
        raw_edges = data.get("edges") if isinstance(data.get("edges"), list) else []
        edges = []
        for e in raw_edges:
            if not isinstance(e, dict):
                continue
            edge_type = coerce_enum(EdgeType, e.get("type"), None)
            if edge_type is None:
                logger.debug("Dropping edge with unknown type: %r", e)
                continue
            edges.append(ConceptEdge(str(e.get("from") or "").strip(), str(e.get("to") or "").strip(), edge_type))
        return cls(
            nodes=[ConceptNode.from_dict(n, i) for i, n in enumerate(raw_nodes, start=1)],
            edges=edges,
        )

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def node(self, node_id: str) -> Optional[ConceptNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def layers(self) -> dict[int, list[ConceptNode]]:
        """Nodes grouped by depth, shallowest first."""
        grouped: dict[int, list[ConceptNode]] = {}
        for n in sorted(self.nodes, key=lambda n: n.depth):
            grouped.setdefault(n.depth, []).append(n)
        return grouped

    def with_nodes(self, nodes: list[ConceptNode]) -> "ConceptPlan":
        """Copy restricted to ``nodes``; edges touching dropped nodes go too."""
        keep = {n.id for n in nodes}
        edges = [e for e in self.edges if e.source in keep and e.target in keep]
        return replace(self, nodes=list(nodes), edges=edges)


@dataclass
class PageRecord:
    """Represents a persisted concept or source-material page."""
    id: Optional[int] = None
    topic_id: Optional[int] = None
    kind: PageKind = PageKind.CONCEPT
    title: str = ""
    markdown: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class EdgeRecord:
    id: Optional[int] = None
    source_page_id: int = 0
    target_page_id: int = 0
    type: EdgeType = EdgeType.PREREQ
