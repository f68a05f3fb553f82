"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

HANDBOOK_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "chapter.type": "magenta",
})


def get_console() -> Console:
    """Return a Console instance with the handbook theme applied."""
    return Console(theme=HANDBOOK_THEME)


def app_header(title: str = "handbook") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "Generate handbook").
        fields: Ordered dict of label -> value pairs.
    """
    lines = [f"  [stat.label]{label}:[/] [stat.value]{value}[/]" for label, value in fields.items()]
    return Panel("\n".join(lines), title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def plan_tree(plan) -> Tree:
    """Build a Rich Tree of the planned chapters.

    Args:
        plan: NarrativePlan with voice, style and chapters.
    """
    tree = Tree(
        f"[bold]{plan.narrative_voice.value}[/] [muted]|[/] {plan.style_inspiration} "
        f"[muted]|[/] {plan.overall_tone}"
    )
    for ch in plan.chapters:
        tree.add(f"[chapter.num]{ch.index:>2}.[/] {ch.title} [chapter.type]({ch.type.value})[/]")
    return tree


def milestone_table(milestones: list) -> Table:
    """Build a Rich Table of discovered milestones.

    Args:
        milestones: List of Milestone objects.
    """
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("#", style="chapter.num", justify="right")
    table.add_column("Milestone", style="bold")
    table.add_column("Scene", justify="center")
    table.add_column("Description")

    for i, m in enumerate(milestones, start=1):
        desc = m.description
        if len(desc) > 60:
            desc = desc[:60] + "..."
        table.add_row(str(i), m.title, "yes" if m.must_be_scene else "", desc)
    return table


def handbook_table(handbooks: list) -> Table:
    """Build a Rich Table of persisted handbooks.

    Args:
        handbooks: List of HandbookRecord objects.
    """
    table = Table(title="Handbooks", show_lines=True, border_style="dim")
    table.add_column("ID", style="chapter.num")
    table.add_column("Title", style="bold")
    table.add_column("Slug", style="muted")
    table.add_column("Chapters", justify="right")
    table.add_column("Updated", style="muted")

    for h in handbooks:
        updated = str(h.updated_at or h.created_at or "")
        table.add_row(str(h.id), h.title, h.slug, str(h.chapters_count), updated)
    return table


def concept_tree(plan, topic_title: str = "") -> Tree:
    """Build a Rich Tree of concepts grouped by depth layer.

    Args:
        plan: ConceptPlan with computed depths.
        topic_title: Root label of the tree.
    """
    tree = Tree(f"[bold]{topic_title or 'Concepts'}[/] [muted]({len(plan.nodes)} concepts, {len(plan.edges)} edges)[/]")
    for depth, nodes in plan.layers().items():
        layer = tree.add(f"[chapter.num]Layer {depth}[/]")
        for n in nodes:
            layer.add(f"[muted]{n.id}[/] {n.title} [chapter.type]({n.kind.value})[/]")
    return tree
