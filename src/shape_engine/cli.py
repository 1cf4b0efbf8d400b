"""ShapeEngine CLI.

Usage:
    shape-engine recognize points.json   # Classify a point list
    shape-engine replay stroke.json      # Replay timestamped draw events through the recognizer
    shape-engine serve                   # Start the WebSocket/REST server
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")
import yaml

from shape_engine.config import RecognizerConfig
from shape_engine.recognizer import ShapeRecognizer
from shape_engine.stroke import ManualScheduler

app = typer.Typer(
    name="shape-engine",
    help="✏️ Hold-to-recognize shape detection for drawing strokes.",
    add_completion=False,
)


def _load_document(path: Path) -> Any:
    text = path.read_text()
    if path.suffix in (".yml", ".yaml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _load_config(config: Optional[str]) -> RecognizerConfig:
    if not config:
        return RecognizerConfig()
    return RecognizerConfig.from_yaml(config)


async def _recognize_points(points: Any, cfg: RecognizerConfig):
    recognizer = ShapeRecognizer(config=cfg, scheduler=ManualScheduler())
    try:
        shape = await recognizer.recognize_points(points)
        return shape, recognizer.adapter_name
    finally:
        recognizer.close()


@app.command()
def recognize(
    points_file: str = typer.Argument(..., help="JSON/YAML list of points ([x, y] or {x, y})"),
    strict: bool = typer.Option(False, help="Use the stricter threshold set"),
    config: Optional[str] = typer.Option(None, help="Recognizer config YAML"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Classify an explicit point list (external provider first, then built-in)."""
    path = Path(points_file)
    if not path.exists():
        typer.echo(f"❌ File not found: {points_file}", err=True)
        raise typer.Exit(1)

    data = _load_document(path)
    points = data.get("points", []) if isinstance(data, dict) else data
    cfg = _load_config(config)
    if strict:
        cfg = replace(cfg, strict=True)
    shape, provider = asyncio.run(_recognize_points(points, cfg))

    if as_json:
        typer.echo(json.dumps({
            "shape": shape.to_dict() if shape else None,
            "points": len(points),
            "provider": provider,
        }))
        return

    if provider:
        typer.echo(f"🔌 External provider: {provider}")
    if shape is None:
        typer.echo(f"🤷 No shape recognized ({len(points)} points)")
        raise typer.Exit(2)
    typer.echo(f"✅ {shape.type.value}")
    typer.echo(f"   ({shape.x1:.1f}, {shape.y1:.1f}) → ({shape.x2:.1f}, {shape.y2:.1f})")


@app.command()
def replay(
    events_file: str = typer.Argument(..., help="JSON/YAML recording of draw events with 't' timestamps"),
    config: Optional[str] = typer.Option(None, help="Recognizer config YAML"),
):
    """Replay a recorded stroke on virtual time and report recognitions."""
    path = Path(events_file)
    if not path.exists():
        typer.echo(f"❌ File not found: {events_file}", err=True)
        raise typer.Exit(1)

    data = _load_document(path)
    events = data.get("events", []) if isinstance(data, dict) else data
    cfg = _load_config(config)

    scheduler = ManualScheduler()
    found: list[dict] = []

    def on_shape(shape_type):
        shape = recognizer.get_recognized_shape()
        found.append({"t": round(scheduler.now(), 3), **shape.to_dict()})
        typer.echo(f"✅ t={scheduler.now():.3f}s {shape_type.value}")

    recognizer = ShapeRecognizer(on_shape=on_shape, config=cfg, scheduler=scheduler)
    if recognizer.adapter_name:
        typer.echo(f"🔌 External provider: {recognizer.adapter_name}")

    for event in events:
        scheduler.advance_to(float(event.get("t", scheduler.now())))
        recognizer.process_event(event)
    # Let a trailing hold fire
    scheduler.advance(cfg.hold_threshold)

    typer.echo(f"📊 {len(events)} events, {len(found)} shape(s) recognized")
    if found:
        typer.echo(json.dumps(found, indent=2))


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, help="Recognizer config YAML"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the WebSocket/REST shape recognition server."""
    import uvicorn
    from shape_engine.server import app as fastapi_app, state

    if config:
        state.configure(_load_config(config))
        typer.echo(f"⚙️ Loaded config: {config}")

    typer.echo(f"🚀 Starting ShapeEngine server on {host}:{port}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


def main():
    app()


if __name__ == "__main__":
    main()
