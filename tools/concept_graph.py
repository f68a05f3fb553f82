"""Concept graph sizing, validation, depth layering and plan files.

All functions are pure except the plan file helpers; none calls the generator.
"""

import json
import math
import re
from collections import deque
from dataclasses import dataclass, field, replace
from pathlib import Path

from config.exceptions import PlanValidationError
from models.concept import ConceptPlan
from models.enums import ConceptKind
from tools.text_utils import slugify

MIN_NODES = 6
MAX_NODES = 36

# English and Polish curriculum vocabulary
_HUGE_RE = re.compile(
    r"world\s*war\s*(?:ii|2)|history\s+of\s+europe|industrial\s+revolution|cold\s+war"
    r"|(?:ii|2)\s*wojna\s*światowa|historia\s+europy|rewolucja\s+przemysłowa|zimna\s+wojna"
)
_LARGE_RE = re.compile(
    r"\bwar\b|period|reign|empire|renaissance|baroque|enlightenment|middle\s+ages|conflict|campaign|economy"
    r"|wojna|okres|panowanie|imperium|renesans|barok|oświecenie|średniowiecze|konflikt|kampania|gospodarka"
)
_TINY_RE = re.compile(
    r"battle|skirmish|character|poem|painting|patent|\bterm\b|\blaw\b|definition|phenomenon"
    r"|bitwa|potyczka|postać|wiersz|obraz|pojęcie|prawo|definicja|zjawisko"
)

_KIND_SCORE = {ConceptKind.CORE: 3, ConceptKind.BRIDGE: 2, ConceptKind.APPLICATION: 1}


@dataclass(frozen=True)
class ScaleSpec:
    """Size of the concept graph requested for one topic."""
    target_nodes: int
    min_nodes: int
    max_nodes: int
    max_depth: int
    max_prereqs_per_node: int
    distribution: dict[str, float] = field(default_factory=dict)

    def distribution_line(self) -> str:
        return ", ".join(f"{kind} ≈ {round(share * 100)}%" for kind, share in self.distribution.items())


def compute_scale_spec(topic_title: str, topic_description: str = "") -> ScaleSpec:
    """Pick the graph size from the breadth of the topic. Offline heuristic."""
    text = f"{topic_title} {topic_description}".lower()
    is_huge = bool(_HUGE_RE.search(text))
    is_large = bool(_LARGE_RE.search(text))
    is_tiny = bool(_TINY_RE.search(text))

    target, max_depth = 14, 5
    distribution = {"core": 0.6, "bridge": 0.2, "application": 0.2}
    if is_huge:
        target, max_depth = 28, 7
        distribution = {"core": 0.45, "bridge": 0.3, "application": 0.25}
    elif is_large:
        target, max_depth = 18, 6
        distribution = {"core": 0.5, "bridge": 0.25, "application": 0.25}
    elif is_tiny:
        target, max_depth = 8, 4
        distribution = {"core": 0.7, "bridge": 0.15, "application": 0.15}

    length = len(topic_description)
    if length > 600:
        target += 4
    elif length < 160:
        target -= 2
    target = max(MIN_NODES, min(MAX_NODES, target))

    return ScaleSpec(
        target_nodes=target,
        min_nodes=max(MIN_NODES, math.floor(target * 0.8)),
        max_nodes=min(MAX_NODES, math.ceil(target * 1.2)),
        max_depth=max_depth,
        max_prereqs_per_node=3 if target > 20 else 2,
        distribution=distribution,
    )


def validate_concept_plan(plan: ConceptPlan) -> None:
    """Raise PlanValidationError unless the plan has nodes and every edge joins two of them."""
    if not plan.nodes:
        raise PlanValidationError("Concept plan has no nodes")
    ids = [n.id for n in plan.nodes]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise PlanValidationError("Concept plan repeats node ids", {"ids": ", ".join(duplicates)})
    known = set(ids)
    for edge in plan.edges:
        if edge.source not in known or edge.target not in known:
            raise PlanValidationError(
                f"Edge to a missing node: {edge.source} -> {edge.target}",
                {"type": edge.type.value},
            )


def compute_depth(plan: ConceptPlan) -> ConceptPlan:
    """Set every node's depth to the longest ordering path leading to it.

    Only prereq and extends edges order the graph; a node is never shallower
    than its predecessors plus one. Raises PlanValidationError on a cycle.
    The input plan is not modified.
    """
    ids = [n.id for n in plan.nodes]
    ordering = [e for e in plan.edges if e.orders and e.source in ids and e.target in ids]

    indegree = {node_id: 0 for node_id in ids}
    for edge in ordering:
        indegree[edge.target] += 1

    queue = deque(node_id for node_id in ids if indegree[node_id] == 0)
    topo = []
    while queue:
        current = queue.popleft()
        topo.append(current)
        for edge in ordering:
            if edge.source != current:
                continue
            indegree[edge.target] -= 1
            if indegree[edge.target] == 0:
                queue.append(edge.target)

    if len(topo) != len(ids):
        cyclic = [node_id for node_id in ids if node_id not in topo]
        raise PlanValidationError(f"Cycle in the concept graph: {', '.join(cyclic)}")

    depth = {node_id: 0 for node_id in ids}
    for node_id in topo:
        preds = [depth[e.source] for e in ordering if e.target == node_id]
        if preds:
            depth[node_id] = max(depth[node_id], max(preds) + 1)

    return replace(plan, nodes=[replace(n, depth=depth[n.id]) for n in plan.nodes])


def trim_to_scale(plan: ConceptPlan, max_nodes: int) -> ConceptPlan:
    """Keep at most ``max_nodes`` nodes, preferring deeper nodes, then core over bridge over application.

    Kept nodes stay in plan order; edges touching dropped nodes are removed.
    """
    if len(plan.nodes) <= max_nodes:
        return plan
    ranked = sorted(plan.nodes, key=lambda n: (-n.depth, -_KIND_SCORE[n.kind]))
    keep = {n.id for n in ranked[:max_nodes]}
    return plan.with_nodes([n for n in plan.nodes if n.id in keep])


# ---- Plan files ----

def concept_plan_path(concept_dir: str | Path, topic_title: str) -> Path:
    return Path(concept_dir) / f"plan-{slugify(topic_title, max_length=60) or 'topic'}.json"


def write_concept_plan(path: str | Path, plan: ConceptPlan) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(plan.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def read_concept_plan(path: str | Path) -> ConceptPlan:
    """Load and validate a saved plan. Raises ValueError for a non-object file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Concept plan file is not a JSON object: {path}")
    plan = ConceptPlan.from_dict(data)
    validate_concept_plan(plan)
    return plan
