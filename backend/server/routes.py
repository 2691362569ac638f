"""
Route registration for the kiosk API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, StreamingResponse

from observability.logger import log_event
from services.errors import BackendError
from session.gateway import GatewayResult, SessionGateway
from session.kiosk_session import OutboundMessage
from spec import TTS_MEDIA_TYPE


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None:  # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(config=app.state.config)
        send_lock = asyncio.Lock()
        sender: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush(ws, send_lock, result.outbound)
            sender = asyncio.create_task(_pump_outbound(ws, send_lock, gateway))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                elif msg.get("bytes") is not None:
                    result = await gateway.on_binary_message(msg["bytes"])
                else:
                    result = GatewayResult()

                await _flush(ws, send_lock, result.outbound)

        except WebSocketDisconnect:
            await _stop_sender(sender)
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "level": "ERROR",
                "event_type": "ws_fatal_error",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await _stop_sender(sender)
            await gateway.on_ws_disconnect(reason="server_error")

    @app.post("/chat")
    async def chat(request: Request) -> JSONResponse:  # pyright: ignore[reportUnusedFunction]
        service = app.state.chat_service
        if service is None:
            return JSONResponse({"error": "chat service not configured"}, status_code=503)

        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "invalid JSON body"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "invalid JSON body"}, status_code=400)

        try:
            payload = await service.answer(body.get("message"))
        except BackendError as e:
            log_event({
                "level": "WARNING",
                "event_type": "chat_failed",
                "error": str(e),
            })
            return JSONResponse({"error": str(e)}, status_code=e.status)

        return JSONResponse(payload)

    @app.get("/tts", response_model=None)
    async def tts(text: str = "") -> StreamingResponse | JSONResponse:  # pyright: ignore[reportUnusedFunction]
        service = app.state.tts_service
        if service is None:
            return JSONResponse({"error": "tts service not configured"}, status_code=503)

        stream = service.stream(text)
        try:
            first = await stream.__anext__()
        except StopAsyncIteration:
            return JSONResponse({"error": "tts returned no audio"}, status_code=502)
        except BackendError as e:
            log_event({
                "level": "WARNING",
                "event_type": "tts_failed",
                "error": str(e),
            })
            return JSONResponse({"error": str(e)}, status_code=e.status)

        return StreamingResponse(
            _prepend(first, stream),
            media_type=TTS_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache"},
        )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

async def _send(ws: WebSocket, msg: OutboundMessage) -> None:
    if isinstance(msg, bytes):
        await ws.send_bytes(msg)
    else:
        await ws.send_text(json.dumps(msg, ensure_ascii=False))


async def _flush(
    ws: WebSocket,
    send_lock: asyncio.Lock,
    outbound: tuple[OutboundMessage, ...],
) -> None:
    if not outbound:
        return
    async with send_lock:
        for msg in outbound:
            await _send(ws, msg)


async def _pump_outbound(
    ws: WebSocket,
    send_lock: asyncio.Lock,
    gateway: SessionGateway,
) -> None:
    """
    Deliver messages produced outside the inbound path (playback audio,
    retrieval results, timers) as soon as they are enqueued.

    The session queue is drained only while holding send_lock so batches
    reach the socket in enqueue order.
    """
    session = gateway.session
    assert session is not None
    while True:
        await session.wait_outbound()
        async with send_lock:
            for msg in gateway.drain():
                await _send(ws, msg)


async def _stop_sender(sender: asyncio.Task[None] | None) -> None:
    if sender is None or sender.done():
        return
    sender.cancel()
    await asyncio.gather(sender, return_exceptions=True)


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    yield first
    try:
        async for chunk in rest:
            yield chunk
    except BackendError as e:
        # Status already sent; the client sees a truncated stream
        log_event({
            "level": "WARNING",
            "event_type": "tts_stream_interrupted",
            "error": str(e),
        })
