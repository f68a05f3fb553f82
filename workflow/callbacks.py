"""Progress callbacks for handbook runs: log lines or a Rich live display."""

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkflowCallback(Protocol):
    """Receives progress events from ``HandbookPipeline`` while it streams."""

    def on_node_exit(self, node: str, state: dict) -> None:
        """A graph node finished; ``state`` is the accumulated workflow state."""
        ...

    def on_chapter_complete(self, chapter_num: int, total: int, word_count: int) -> None:
        """A chapter file has been written or reused."""
        ...

    def on_error(self, node: str, error: str) -> None:
        """A node left an error in the state; the run is about to stop."""
        ...

    def on_workflow_complete(self, final_state: dict) -> None:
        ...


class LoggingCallback:
    """Plain log-line progress, used when console logging is on."""

    def on_node_exit(self, node: str, state: dict) -> None:
        chapter = state.get("current_chapter")
        if node in ("write_chapter", "advance_chapter") and chapter:
            logger.debug("← node: %s (chapter %d)", node, chapter)
        else:
            logger.debug("← node: %s", node)

    def on_chapter_complete(self, chapter_num: int, total: int, word_count: int) -> None:
        logger.info("Chapter %d/%s ready (%d words)", chapter_num, total or "?", word_count)

    def on_error(self, node: str, error: str) -> None:
        logger.error("Handbook run stopped in '%s': %s", node, error)

    def on_workflow_complete(self, final_state: dict) -> None:
        logger.info(
            "Handbook %s: %d chapters ready, %d generated, study section %s",
            final_state.get("handbook_path", "?"),
            final_state.get("chapters_done", 0),
            final_state.get("chapters_generated", 0),
            final_state.get("study_section_path") or "not written",
        )


class RichProgressCallback:
    """Progress callback that renders a Rich live progress display in the terminal."""

    # astream fires after each node completes, so show the step that runs next
    _ENTERING_LABEL: dict[str, str] = {
        "initialize": "Discovering milestones and planning",
        "plan_handbook": "Writing handbook intro and table of contents",
        "write_handbook": "Writing chapters",
        "write_chapter": "Writing chapters",
        "advance_chapter": "Writing chapters",
        "write_study_section": "Finishing",
        "handle_error": "Stopping",
    }

    def __init__(self, console=None, total_chapters: int = 0):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
            total_chapters: Total chapters to write (for progress bar max), if known.
        """
        self._console = console
        self._total = total_chapters
        self._progress = None
        self._chapter_task_id = None
        self._node_task_id = None

    def start(self):
        """Start the progress display. Call before running the workflow."""
        from rich.console import Console
        from rich.progress import Progress, SpinnerColumn, TextColumn, TaskProgressColumn

        console = self._console or Console()
        self._progress = Progress(
            SpinnerColumn("dots"),
            TextColumn("[progress.description]{task.description}"),
            TaskProgressColumn(),
            console=console,
        )
        self._progress.start()

        self._chapter_task_id = self._progress.add_task(
            "Waiting to start...",
            total=self._total if self._total > 0 else None,
        )
        self._node_task_id = self._progress.add_task("[dim]Initializing...[/]", total=None)

    def stop(self):
        """Stop the progress display."""
        if self._progress:
            self._progress.stop()
            self._progress = None

    def on_node_exit(self, node: str, state: dict) -> None:
        if not self._progress:
            return

        total = state.get("chapter_count", 0)
        if total and total != self._total:
            # Chapter count is only known after planning
            self._total = total
            self._progress.update(self._chapter_task_id, total=total)

        label = self._ENTERING_LABEL.get(node, node)
        if node == "initialize" and state.get("plan") is not None:
            label = "Resuming chapters"
        if node == "advance_chapter" and state.get("should_stop"):
            label = "Writing study section"

        ch = state.get("current_chapter", 0)
        ch_suffix = f" (chapter {ch})" if ch and label.startswith("Writing chapters") else ""
        self._progress.update(self._node_task_id, description=f"[dim]{label}{ch_suffix}[/]")

    def on_chapter_complete(self, chapter_num: int, total: int, word_count: int) -> None:
        if not self._progress:
            return
        total_label = str(total) if total > 0 else "?"
        self._progress.update(
            self._chapter_task_id,
            completed=chapter_num,
            description=f"[green]Chapter {chapter_num}/{total_label} done[/] "
                        f"([cyan]{word_count:,}[/] words)",
        )

    def on_error(self, node: str, error: str) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._node_task_id,
            description=f"[red]Error ({node}): {error[:80]}[/]",
        )

    def on_workflow_complete(self, final_state: dict) -> None:
        if not self._progress:
            return
        done = final_state.get("chapters_done", 0)
        if final_state.get("error"):
            description = f"[bold red]Stopped after {done} chapters[/]"
        else:
            description = f"[bold green]Done! {done} chapters[/]"
        self._progress.update(self._chapter_task_id, description=description)
        self._progress.update(self._node_task_id, description="")
