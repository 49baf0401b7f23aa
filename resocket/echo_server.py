"""FastAPI echo server for trying the socket client against a real endpoint."""

import logging
import os
from typing import Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

app = FastAPI(title="resocket echo server", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

connections: Set[WebSocket] = set()


@app.get("/")
async def root():
    """Root endpoint returning server information."""
    return {
        "message": "resocket echo server",
        "version": "1.0.0",
        "endpoints": {
            "websocket": "/ws",
            "health": "/health"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "connections": len(connections)
    }


@app.websocket("/ws")
async def echo_endpoint(websocket: WebSocket):
    """
    Echo every text or binary frame back to the sender.

    Args:
        websocket: WebSocket connection
    """
    await websocket.accept()
    connections.add(websocket)
    logger.info(f"Client connected ({len(connections)} open)")
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is not None:
                await websocket.send_text(message["text"])
            elif message.get("bytes") is not None:
                await websocket.send_bytes(message["bytes"])
    except WebSocketDisconnect:
        pass
    finally:
        connections.discard(websocket)
        logger.info(f"Client disconnected ({len(connections)} open)")


def main() -> None:
    import uvicorn
    uvicorn.run(
        "resocket.echo_server:app",
        host=os.environ.get("RESOCKET_ECHO_HOST", DEFAULT_HOST),
        port=int(os.environ.get("RESOCKET_ECHO_PORT", DEFAULT_PORT)),
        log_level="info"
    )


if __name__ == "__main__":
    main()
