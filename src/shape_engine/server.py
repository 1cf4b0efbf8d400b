"""WebSocket/REST host for the shape recognition stage.

Each WebSocket connection owns its own ShapeRecognizer. Clients stream draw
events as JSON; every event is echoed back as the pass-through output and
recognitions are pushed when a hold fires.

Client -> server:
    {"type": "down", "x": 10, "y": 10}
    {"type": "move", "x": 12, "y": 11}
    {"type": "up"}
    {"type": "ping"}
    {"type": "get_shape"}

Server -> client:
    {"type": "connected", "hold_threshold": 0.5, "provider": null}
    {"type": "event", "event": {...}}
    {"type": "shape", "shape": {"type": "circle", "x1": ..., ...}}
    {"type": "pong", "server_time": ...}

Usage:
    uvicorn shape_engine.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

try:
    from fastapi import FastAPI, WebSocket, WebSocketDisconnect
    from fastapi.responses import PlainTextResponse
    from pydantic import BaseModel
    _HAS_FASTAPI = True
except ImportError:
    _HAS_FASTAPI = False

if not _HAS_FASTAPI:
    raise ImportError("FastAPI required. Install with: pip install fastapi uvicorn")

from shape_engine import __version__
from shape_engine.adapters import ClassifierResolver
from shape_engine.config import RecognizerConfig
from shape_engine.metrics import MetricsCollector
from shape_engine.recognizer import EVENT_TYPES, ShapeRecognizer

logger = logging.getLogger("shape_engine.server")

app = FastAPI(title="ShapeEngine", version=__version__)


# --- State ---

class ServerState:
    def __init__(self):
        self.config = RecognizerConfig()
        self.metrics = MetricsCollector()
        self.clients: set[WebSocket] = set()
        self.total_shapes = 0
        self.last_shape: Optional[dict] = None
        self._resolver: Optional[ClassifierResolver] = None

    @property
    def resolver(self) -> ClassifierResolver:
        """Provider resolution shared by every recognizer the server creates."""
        if self._resolver is None:
            candidates = self.config.providers if self.config.resolve_providers else []
            self._resolver = ClassifierResolver(candidates)
        return self._resolver

    def configure(self, config: RecognizerConfig):
        self.config = config
        self._resolver = None

    def new_recognizer(self, on_shape=None) -> ShapeRecognizer:
        return ShapeRecognizer(
            on_shape=on_shape,
            config=self.config,
            resolver=self.resolver,
            metrics=self.metrics,
        )

state = ServerState()


class Point(BaseModel):
    x: float
    y: float


class RecognizeRequest(BaseModel):
    points: list[Point]


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    return {
        "version": __version__,
        "clients": len(state.clients),
        "provider": state.resolver.provider,
        "provider_resolved": state.resolver.resolved,
        "total_shapes": state.total_shapes,
        "last_shape": state.last_shape,
    }


@app.get("/api/config")
async def api_config():
    return state.config.to_dict()


@app.post("/api/recognize")
async def api_recognize(req: RecognizeRequest):
    """Classify an explicit point list; no hold timer involved."""
    recognizer = state.new_recognizer()
    try:
        shape = await recognizer.recognize_points([(p.x, p.y) for p in req.points])
    finally:
        recognizer.close()
    return {
        "shape": shape.type.value if shape else None,
        "params": shape.to_dict() if shape else None,
        "points": len(req.points),
    }


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    state.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: draw events ---

def _has_coordinates(data: dict) -> bool:
    try:
        float(data["x"]), float(data["y"])
    except (KeyError, TypeError, ValueError):
        return False
    return True


async def _pump(ws: WebSocket, outbox: asyncio.Queue):
    """Forward queued messages to the client in order."""
    while True:
        message = await outbox.get()
        await ws.send_json(message)


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    outbox: asyncio.Queue = asyncio.Queue()

    def on_shape(shape_type):
        shape = recognizer.get_recognized_shape()
        if shape is None:
            return
        payload = shape.to_dict()
        state.total_shapes += 1
        state.last_shape = payload
        outbox.put_nowait({"type": "shape", "shape": payload})

    recognizer = state.new_recognizer(on_shape=on_shape)
    recognizer.set_chain_output(lambda event: outbox.put_nowait({"type": "event", "event": event}))

    outbox.put_nowait({
        "type": "connected",
        "hold_threshold": state.config.hold_threshold,
        "provider": recognizer.adapter_name,
    })
    sender = asyncio.create_task(_pump(ws, outbox))

    try:
        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                outbox.put_nowait({"type": "ping"})
                continue

            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                outbox.put_nowait({"type": "error", "message": "invalid JSON"})
                continue

            if not isinstance(data, dict):
                outbox.put_nowait({"type": "error", "message": "expected a JSON object"})
                continue

            msg_type = data.get("type")
            if msg_type in ("down", "move") and not _has_coordinates(data):
                outbox.put_nowait({"type": "error", "message": f"{msg_type} needs numeric x and y"})
            elif msg_type in EVENT_TYPES:
                recognizer.process_event(data)
            elif msg_type == "ping":
                outbox.put_nowait({"type": "pong", "server_time": time.time()})
            elif msg_type == "get_shape":
                shape = recognizer.get_recognized_shape()
                outbox.put_nowait({"type": "shape_state", "shape": shape.to_dict() if shape else None})
            else:
                outbox.put_nowait({"type": "error", "message": f"unknown message type {msg_type!r}"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        recognizer.close()
        sender.cancel()
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8765)
