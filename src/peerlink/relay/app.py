"""FastAPI application for the development relay."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.responses import Response

from peerlink.relay.registry import PeerRegistry

logger = logging.getLogger(__name__)


def create_app(registry: PeerRegistry | None = None) -> FastAPI:
    """
    Create and configure the relay application.

    Protocol:
    1. A peer listens by opening a WebSocket to ``/{peer_id}``
    2. Anyone POSTs a message body to ``/{peer_id}``
    3. The relay forwards the body to the listener as one binary frame
       and answers 202, or 404 when nobody listens on that id

    Args:
        registry: Peer registry (default: a new one per app)

    Returns:
        Configured FastAPI app
    """
    registry = registry or PeerRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan events."""
        logger.info("Starting peerlink relay...")
        yield
        logger.info("Shutting down peerlink relay...")
        await registry.stop()

    app = FastAPI(
        title="peerlink relay",
        description="Development relay forwarding posted messages to listening peers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "peers": registry.connection_count}

    @app.get("/stats")
    async def get_stats():
        return {"status": "ok", **registry.get_stats()}

    @app.post("/{peer_id}", status_code=202)
    async def post_message(peer_id: str, request: Request):
        body = await request.body()
        if not await registry.forward(peer_id, body):
            raise HTTPException(status_code=404, detail="Peer not connected")
        return Response(status_code=202)

    @app.websocket("/{peer_id}")
    async def listen(websocket: WebSocket, peer_id: str):
        listening = await registry.register(peer_id, websocket)
        if listening is None:
            return
        try:
            while True:
                # Inbound frames from listeners carry no meaning; wait for disconnect
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            await registry.unregister(listening)

    return app
