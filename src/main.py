"""Command-line entry point for toonframe."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

from models.storyboard import ImageSize, SessionStatus, StoryboardState
from services.export_service import (
    are_all_images_generated,
    build_archive,
    build_pdf,
    count_generated_images,
)
from services.gemini_client import GeminiBackend
from services.storyboard_service import create_storyboard_service
from services.storyboard_store import StoryboardStore
from utils.config import load_config, validate_config
from utils.errors import StoryboardError
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ProgressBarCallback:
    """Store subscriber that mirrors generated-image counts onto a tqdm bar."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    def __call__(self, state: StoryboardState) -> None:
        if state.data is None:
            return

        generated, total = count_generated_images(state.data)
        if self.bar is None:
            self.bar = tqdm(total=total, desc="Scene images", unit="img", leave=True)

        self.bar.n = generated
        in_flight = next((s for s in state.data.scenes if s.is_generating_image), None)
        if state.is_generating_reference_sheet:
            self.bar.set_description("Reference sheet")
        elif in_flight and in_flight.generation_phase:
            label = "Retrying" if in_flight.generation_phase.is_repair else "Scene"
            self.bar.set_description(f"{label} {in_flight.id}")
        else:
            self.bar.set_description("Scene images")
        self.bar.refresh()

    def close(self):
        if self.bar:
            self.bar.close()


def print_summary(console: Console, state: StoryboardState) -> None:
    """Render a per-scene result table."""
    table = Table(title="Storyboard", show_lines=False)
    table.add_column("Scene", style="cyan", justify="right")
    table.add_column("Title", style="white")
    table.add_column("Direction")
    table.add_column("A", justify="center")
    table.add_column("B", justify="center")

    def mark(present: bool) -> str:
        return "[green]✓[/green]" if present else "[red]✗[/red]"

    for scene in state.data.scenes:
        table.add_row(
            str(scene.id),
            scene.title,
            scene.character_direction.value,
            mark(scene.image_a is not None),
            mark(scene.image_b is not None),
        )

    console.print(table)
    generated, total = count_generated_images(state.data)
    console.print(f"[bold]{generated}/{total}[/bold] images generated")


def write_exports(
    console: Console,
    state: StoryboardState,
    output_dir: Path,
    write_pdf: bool = True,
    write_zip: bool = True,
) -> list[Path]:
    """Write the PDF (always possible) and the ZIP (only when complete)."""
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    written = []

    if write_pdf:
        pdf_path = output_dir / f"storyboard_{stamp}.pdf"
        pdf_path.write_bytes(build_pdf(state.data, state.character_image))
        written.append(pdf_path)

    if write_zip:
        if are_all_images_generated(state.data):
            zip_path = output_dir / f"storyboard_{stamp}.zip"
            zip_path.write_bytes(build_archive(state.data, state.character_image))
            written.append(zip_path)
        else:
            console.print("[yellow]Skipping ZIP archive: some scene images are missing[/yellow]")

    for path in written:
        console.print(f"Wrote [bold]{path}[/bold]")
    return written


async def run(args: argparse.Namespace, config: dict, console: Console) -> int:
    """Generate one storyboard and write its exports.

    Returns:
        Process exit code
    """
    if args.script_file:
        script = Path(args.script_file).read_text(encoding="utf-8")
    else:
        script = args.script

    store = StoryboardStore()
    backend = GeminiBackend(
        api_key=config["gemini_api_key"],
        text_model=config["text_model"],
        image_model=config["image_model"],
        thinking_budget=config["thinking_budget"],
    )
    service = create_storyboard_service(backend, store, config=config)

    progress = ProgressBarCallback()
    store.subscribe(progress)

    console.print(Panel("Analyzing script...", title="ToonFrame", border_style="cyan"))
    try:
        state = await service.generate(script, image_size=ImageSize(args.size))
    except (StoryboardError, ValueError) as e:
        console.print(f"[red]Storyboard generation failed:[/red] {e}")
        return 1
    finally:
        progress.close()

    if state.data is not None:
        print_summary(console, state)
        write_exports(
            console,
            state,
            Path(args.output or config["local_output_folder"]),
            write_pdf=not args.no_pdf,
            write_zip=not args.no_zip,
        )

    if state.status == SessionStatus.FAILED:
        console.print(f"[red]{state.error.message if state.error else 'Generation failed'}[/red]")
        return 1
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="ToonFrame storyboard generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  toonframe --script "A fox finds a lantern in the snow"
  toonframe --script-file story.txt --size 2K --output ./boards
        """,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--script", help="Story script text")
    source.add_argument("--script-file", help="Path to a text file containing the script")
    parser.add_argument(
        "--size",
        choices=[size.value for size in ImageSize],
        default=None,
        help="Scene image resolution (default: IMAGE_SIZE from config)",
    )
    parser.add_argument("--output", help="Output folder (default: LOCAL_OUTPUT_FOLDER)")
    parser.add_argument("--no-pdf", action="store_true", help="Do not write the PDF")
    parser.add_argument("--no-zip", action="store_true", help="Do not write the ZIP archive")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")

    args = parser.parse_args()

    config = load_config()
    setup_logging(args.log_level or config["log_level"], json_output=config["log_json"])
    args.size = args.size or config["image_size"]

    console = Console()
    errors = validate_config(config)
    if errors:
        for error in errors:
            console.print(f"[red]Configuration error:[/red] {error}")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run(args, config, console)))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
