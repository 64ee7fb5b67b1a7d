import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

logger = logging.getLogger("uvicorn.error")


class ClientChannel:
    """Outbound message queue for one WebSocket client.

    send() never blocks, so callers on the frame path or in the celebration
    timeline never wait on the network.
    """

    def __init__(self):
        self._queue: asyncio.Queue[dict] = asyncio.Queue()

    def send(self, message: BaseModel) -> None:
        self._queue.put_nowait(message.model_dump())

    async def writer(self, websocket: WebSocket) -> None:
        """Drain the queue into the socket until the client goes away."""
        try:
            while True:
                payload = await self._queue.get()
                await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError):
            pass
        except asyncio.CancelledError:
            pass
