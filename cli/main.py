"""CLI entry point — study handbook generator.

Usage:
  handbook generate --work "Title" --author "Author"   generate a handbook
  handbook finish                                     push the latest handbook to the database
  handbook milestones --work ... --author ...         discover canonical milestones
  handbook concepts --topic "Topic"                   plan a concept graph and write its pages
  handbook status                                     list published handbooks
  handbook --help                                     show all commands
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    plan_tree,
    concept_tree,
    milestone_table,
    handbook_table,
)
from config.exceptions import HandbookError
from config.settings import Settings
from config.logging_config import setup_logging
from models.database import Database
from tools.handbook_files import HandbookPaths
from workflow.callbacks import LoggingCallback, RichProgressCallback

console = get_console()
logger = logging.getLogger(__name__)


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """Study handbook generator — abridged retellings with exam-prep notes.

    \b
    Examples:
      handbook generate --work "Pan Tadeusz" --author "Adam Mickiewicz"
      handbook generate --work "Lalka" --author "Bolesław Prus" --chapters 12
      handbook finish
      handbook concepts -t "Romanticism" --subject "Polish"
      handbook status
    """
    ctx.ensure_object(dict)["verbose"] = verbose
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# generate command
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--work", "-w", required=True, help="Title of the work")
@click.option("--author", "-a", required=True, help="Author of the work")
@click.option("--minutes", "-m", default=None, type=float, help="Target reading time of the whole handbook (default 5)")
@click.option("--chapters", "-c", default=None, type=int, help="Fixed chapter count (8-18); derived from milestones if omitted")
@click.option("--minutes-per-chapter", default=None, type=float, help="Reading time per chapter")
@click.option("--force", is_flag=True, help="Regenerate existing chapter and study section files")
@click.option("--resume", is_flag=True, help="Continue the latest handbook of this work")
@click.option("--refresh-milestones", is_flag=True, help="Ignore the milestone cache")
@click.option("--link-mode", type=click.Choice(["hash", "none"]), default=None, help="Chapter links in the study section")
@click.option("--out-dir", "-o", default=None, type=click.Path(file_okay=False), help="Output directory")
@click.pass_context
def generate(ctx, work, author, minutes, chapters, minutes_per_chapter, force, resume,
             refresh_milestones, link_mode, out_dir):
    """Generate a handbook: plan, table of contents, chapters and study section.

    Example:
      handbook generate -w "Pan Tadeusz" -a "Adam Mickiewicz" --minutes 5
    """
    from workflow.graph import run_workflow

    settings = Settings()

    console.print(app_header())
    console.print()

    fields = {
        "Work": work,
        "Author": author,
        "Reading time": f"{settings.default_target_minutes if minutes is None else minutes:g} min",
        "Chapters": str(chapters) if chapters else "auto",
    }
    if resume:
        fields["Mode"] = "resume"
    if force:
        fields["Force"] = "yes"
    console.print(command_panel("Generate handbook", fields))
    console.print()

    try:
        settings.check_generation_ready()

        # live progress would interleave with console log lines
        if ctx.obj.get("verbose"):
            callback = LoggingCallback()
        else:
            callback = RichProgressCallback(console=console, total_chapters=chapters or 0)
            callback.start()
        try:
            final_state = asyncio.run(run_workflow(
                work_title=work,
                author=author,
                target_minutes=minutes,
                desired_chapters=chapters,
                minutes_per_chapter=minutes_per_chapter,
                out_dir=out_dir,
                link_mode=link_mode,
                force=force,
                resume=resume,
                refresh_milestones=refresh_milestones,
                settings=settings,
                callback=callback,
            ))
        finally:
            if isinstance(callback, RichProgressCallback):
                callback.stop()

        console.print()

        error = final_state.get("error", "")
        if error:
            console.print(f"\n[error]Error: {error}[/]")
            if final_state.get("handbook_path"):
                console.print("[muted]Files written so far are kept; rerun with [info]--resume[/] to continue.[/]")
            sys.exit(1)

        plan = final_state.get("plan")
        if plan is not None:
            console.print(plan_tree(plan))
            console.print()

        paths = HandbookPaths(Path(final_state["handbook_path"]))
        body = "\n".join([
            f"  [stat.label]Handbook:[/] {paths.markdown_path}",
            f"  [stat.label]Plan:[/] {paths.plan_path}",
            f"  [stat.label]Chapters:[/] {paths.chapters_dir}",
            f"  [stat.label]Study section:[/] {final_state.get('study_section_path', paths.study_section_path)}",
            f"  [stat.label]Generated:[/] {final_state.get('chapters_generated', 0)}"
            f"/{final_state.get('chapters_done', 0)} chapters",
        ])
        console.print(success_panel("Handbook ready", body))
        console.print(f"\nNext: [info]handbook finish --chapters-dir \"{paths.chapters_dir}\"[/]")

    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)
    except HandbookError as e:
        console.print(f"\n[error]Error: {e}[/]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[error]Run failed: {e}[/]")
        logger.exception("Workflow failed")
        sys.exit(1)


# ---------------------------------------------------------------------------
# finish command
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--chapters-dir", "-d", default=None, type=click.Path(exists=True, file_okay=False),
              help="Chapters directory (default: latest handbook)")
@click.option("--work", "-w", default=None, help="Work title (default: read from the handbook file)")
@click.option("--from", "from_", default=None, type=int, help="First chapter to push (1-based)")
@click.option("--to", default=None, type=int, help="Last chapter to push (inclusive)")
@click.option("--no-study-section", is_flag=True, help="Do not push _STUDY_SECTION.md")
def finish(chapters_dir, work, from_, to, no_study_section):
    """Push chapter files and the study section into the database.

    Example:
      handbook finish
      handbook finish -d data/handbooks/handbook-lalka-2025-01-31T09-15-02-123Z.chapters
    """
    from publisher.handbook_publisher import HandbookPublisher

    console.print(app_header())
    console.print()

    try:
        publisher = HandbookPublisher(settings=Settings())
        result = publisher.finish(
            chapters_dir=chapters_dir,
            work_title=work,
            from_=from_,
            to=to,
            include_study_section=not no_study_section,
        )
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)
    except HandbookError as e:
        console.print(f"[error]Error: {e}[/]")
        sys.exit(1)

    body = "\n".join([
        f"  [stat.label]Handbook:[/] {result.title} [muted](ID: {result.handbook_id})[/]",
        f"  [stat.label]Chapters pushed:[/] {result.chapters_pushed}",
        f"  [stat.label]Study section:[/] {'yes' if result.study_section_pushed else 'no'}",
        f"  [stat.label]Chapter count:[/] {result.chapters_count}",
    ])
    console.print(success_panel("Published", body))


# ---------------------------------------------------------------------------
# milestones command
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--work", "-w", required=True, help="Title of the work")
@click.option("--author", "-a", required=True, help="Author of the work")
@click.option("--force", is_flag=True, help="Ignore the milestone cache")
def milestones(work, author, force):
    """Discover (or load cached) canonical milestones of a work."""
    from agents.milestone_agent import MilestoneDiscoverer

    settings = Settings()
    console.print(app_header())
    console.print()

    try:
        settings.check_generation_ready()
        discoverer = MilestoneDiscoverer(settings=settings)
        with console.status("Discovering milestones..."):
            result = asyncio.run(discoverer.discover(work, author, force=force))
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)
    except HandbookError as e:
        console.print(f"[error]Error: {e}[/]")
        sys.exit(1)

    if not result.milestones:
        console.print("[warning]No milestones found.[/]")
        return
    console.print(milestone_table(result.milestones))
    console.print(f"\n[muted]Cache: {discoverer.cache_path(work, author)}[/]")


# ---------------------------------------------------------------------------
# concepts command
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--topic", "-t", required=True, help="Topic title")
@click.option("--description", "-d", default="", help="Topic description")
@click.option("--subject", default="", help="School subject")
@click.option("--section", default="", help="Curriculum section")
@click.option("--section-description", default="", help="Curriculum section description")
@click.option("--sources-count", default=None, type=click.IntRange(5, 12), help="Items on the sources page (default 8)")
@click.option("--no-sources", is_flag=True, help="Skip the source material page")
@click.option("--plan-only", is_flag=True, help="Only write the concept plan file")
@click.option("--force", is_flag=True, help="Replan and rewrite existing pages")
def concepts(topic, description, subject, section, section_description, sources_count,
             no_sources, plan_only, force):
    """Plan a topic's concept graph, write its pages and the sources page.

    Example:
      handbook concepts -t "Romanticism in Polish poetry" --subject "Polish" --plan-only
    """
    from models.concept import TopicContext
    from workflow.concept_pipeline import run_concept_workflow

    settings = Settings()
    console.print(app_header())
    console.print()

    fields = {"Topic": topic}
    if subject:
        fields["Subject"] = subject
    if section:
        fields["Section"] = section
    fields["Mode"] = "plan only" if plan_only else ("pages" if no_sources else "pages + sources")
    if force:
        fields["Force"] = "yes"
    console.print(command_panel("Concept graph", fields))
    console.print()

    context = TopicContext(
        title=topic, description=description, subject=subject,
        section=section, section_description=section_description,
    )
    try:
        settings.check_generation_ready()
        with console.status("Planning concepts and writing pages..."):
            final_state = asyncio.run(run_concept_workflow(
                context,
                force=force,
                plan_only=plan_only,
                with_sources=not no_sources,
                sources_count=sources_count,
                settings=settings,
            ))
    except KeyboardInterrupt:
        console.print("\n[warning]Interrupted[/]")
        sys.exit(130)
    except HandbookError as e:
        console.print(f"[error]Error: {e}[/]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[error]Run failed: {e}[/]")
        logger.exception("Concept workflow failed")
        sys.exit(1)

    error = final_state.get("error", "")
    if error:
        console.print(f"[error]Error: {error}[/]")
        sys.exit(1)

    plan = final_state.get("concept_plan")
    if plan is not None:
        console.print(concept_tree(plan, topic))
        console.print()

    lines = [f"  [stat.label]Plan:[/] {final_state.get('plan_path', '')}"
             f"{' [muted](reused)[/]' if final_state.get('plan_reused') else ''}"]
    if not plan_only:
        lines += [
            f"  [stat.label]Pages:[/] {final_state.get('pages_written', 0)} written, "
            f"{final_state.get('pages_reused', 0)} reused",
            f"  [stat.label]Edges added:[/] {final_state.get('edges_added', 0)}",
            f"  [stat.label]Sources page:[/] {'yes' if final_state.get('sources_page_id') else 'no'}",
        ]
    console.print(success_panel("Concepts ready", "\n".join(lines)))


# ---------------------------------------------------------------------------
# status command
# ---------------------------------------------------------------------------


@cli.command()
def status():
    """List handbooks published to the database."""
    settings = Settings()
    console.print(app_header())
    console.print()

    try:
        handbooks = Database(settings.sqlite_db_path).list_handbooks()
    except HandbookError as e:
        console.print(f"[error]Error: {e}[/]")
        sys.exit(1)

    if not handbooks:
        console.print("[warning]No handbooks yet. Run [info]handbook generate[/] and [info]handbook finish[/].[/]")
        return
    console.print(handbook_table(handbooks))


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
