"""Image classifier CLI - imgclassify command line tool."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from PIL import Image, UnidentifiedImageError
from rich.console import Console
from rich.table import Table

from imageclassifier import __version__
from imageclassifier.app import CaptureResult, ClassifierApp
from imageclassifier.camera import CameraHandler, FileCameraBackend
from imageclassifier.classifier import read_labels
from imageclassifier.config import Config, load_config
from imageclassifier.errors import ClassifierError

app = typer.Typer(
    name="imgclassify",
    help="On-device image classifier",
    no_args_is_help=True,
)
console = Console()


def get_config() -> Config:
    """Get configuration."""
    return load_config()


def print_result(result: CaptureResult) -> None:
    """Render a capture result as a table."""
    table = Table(title=result.text)
    table.add_column("ID", style="cyan")
    table.add_column("Label")
    table.add_column("Confidence", justify="right")

    for r in result.recognitions:
        table.add_row(r.id, r.title, f"{r.confidence * 100.0:.1f}%")

    console.print(table)


@app.command()
def classify(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image to classify"),
    orientation: int = typer.Option(0, help="Clockwise rotation in degrees"),
    top_k: Optional[int] = typer.Option(None, "--top-k", min=0, help="Number of results"),
    labels: Optional[Path] = typer.Option(None, help="Labels file"),
    model: Optional[Path] = typer.Option(None, help="TFLite model file"),
    mock: bool = typer.Option(False, help="Use the mock inference engine"),
    save_preview: Optional[Path] = typer.Option(None, help="Write the model input image here"),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Classify an image file."""
    cfg = get_config()

    try:
        with Image.open(image) as img:
            width, height = img.size
    except (OSError, UnidentifiedImageError) as e:
        console.print(f"[red]Error:[/] Cannot open image: {e}")
        sys.exit(1)

    cfg.camera.backend = "file"
    cfg.camera.image_path = str(image)
    cfg.camera.preview_width = width
    cfg.camera.preview_height = height
    cfg.preprocess.sensor_orientation = orientation
    if save_preview:
        cfg.preprocess.save_preview = True
        cfg.preprocess.preview_path = str(save_preview)
    if top_k is not None:
        cfg.classifier.results_to_show = top_k
    if labels:
        cfg.classifier.labels_file = str(labels)
    if model:
        cfg.classifier.model_file = str(model)
    if mock:
        cfg.classifier.engine = "mock"

    camera = CameraHandler(FileCameraBackend(image), width, height)

    async def _classify() -> CaptureResult | None:
        async with ClassifierApp(cfg, camera=camera) as classifier_app:
            return await classifier_app.start_image_capture()

    try:
        result = asyncio.run(_classify())
    except (ClassifierError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if result is None:
        console.print("[red]Error:[/] Image could not be processed")
        sys.exit(1)

    if json_output:
        print(
            json.dumps(
                {
                    "frame_id": result.frame_id,
                    "text": result.text,
                    "recognitions": [r.to_dict() for r in result.recognitions],
                },
                indent=2,
            )
        )
    else:
        print_result(result)


@app.command("labels")
def show_labels(
    labels: Optional[Path] = typer.Option(None, help="Labels file"),
    limit: int = typer.Option(20, help="Maximum labels to list (0 = all)"),
):
    """List the label catalog."""
    path = labels or Path(get_config().classifier.labels_file)

    try:
        catalog = read_labels(path)
    except ClassifierError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    table = Table(title=f"{len(catalog)} labels in {path}")
    table.add_column("ID", style="cyan")
    table.add_column("Label")

    shown = catalog if limit == 0 else catalog[:limit]
    for i, title in enumerate(shown):
        table.add_row(str(i), title)

    console.print(table)


@app.command()
def run(mock: bool = typer.Option(False, help="Use mock camera and engine")):
    """Capture and classify each time Enter is pressed."""

    async def _run():
        async with ClassifierApp(get_config(), mock_mode=mock) as classifier_app:
            console.print("Press Enter to capture, or 'q' to quit.")
            loop = asyncio.get_running_loop()
            while True:
                try:
                    user_input = await loop.run_in_executor(None, input, "> ")
                except EOFError:
                    break

                if user_input.strip().lower() == "q":
                    break

                result = await classifier_app.start_image_capture()
                if result is None:
                    console.print("[yellow]No result, try again.[/]")
                else:
                    print_result(result)

    try:
        asyncio.run(_run())
    except (ClassifierError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)


@app.command()
def config(json_output: bool = typer.Option(False, "--json", help="Print as JSON")):
    """Show configuration."""
    cfg = get_config()

    if json_output:
        print(json.dumps(cfg.model_dump(), indent=2, default=str))
    else:
        console.print("[bold]Configuration[/]")
        console.print(f"  Device: {cfg.device.name}")
        console.print(f"  Mode: {cfg.device.mode}")
        console.print(f"  Mock Mode: {cfg.mock_mode}")
        console.print("\n[bold]Camera[/]")
        console.print(f"  Backend: {cfg.camera.backend}")
        console.print(f"  Preview: {cfg.camera.preview_width}x{cfg.camera.preview_height}")
        console.print("\n[bold]Preprocess[/]")
        console.print(f"  Target size: {cfg.preprocess.target_size}")
        console.print(f"  Orientation: {cfg.preprocess.sensor_orientation}")
        console.print("\n[bold]Classifier[/]")
        console.print(f"  Engine: {cfg.classifier.engine}")
        console.print(f"  Model: {cfg.classifier.model_file}")
        console.print(f"  Labels: {cfg.classifier.labels_file}")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]imageclassifier[/] v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
