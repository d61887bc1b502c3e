"""Best-effort live updates over websockets.

Delivery is at-most-once: a listener whose queue is full loses the event,
late joiners get no replay. Clients reconcile by re-fetching.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class Broadcaster:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._listeners: set[asyncio.Queue] = set()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._listeners.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._listeners.discard(queue)

    def publish(self, event_type: str, payload: Any) -> int:
        """Fan the event out to every listener; returns how many got it."""
        event = {"eventType": event_type, "payload": jsonable_encoder(payload)}
        delivered = 0
        for queue in list(self._listeners):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s for a slow listener", event_type)
        return delivered


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


@router.websocket("/ws")
async def events(websocket: WebSocket):
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    queue = broadcaster.subscribe()
    logger.info("Realtime listener connected (%d total)", broadcaster.listener_count)
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(queue)
        logger.info("Realtime listener gone (%d left)", broadcaster.listener_count)
