"""
Live channel
============

WS /ws -- JSON text frames ``{type, rideId?, data?}``

Client -> server: ``subscribe``, ``unsubscribe``, ``location_update``
Server -> client: ``location_update``, ``ride_status``

Nothing is pushed until the client subscribes to a ride.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ridehail.api.dependencies import get_services
from ridehail.realtime.channel import handle_message
from ridehail.services.container import RideServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


@router.websocket("/ws")
async def live_channel(
    websocket: WebSocket,
    services: RideServices = Depends(get_services),
):
    await websocket.accept()
    logger.info("Live client connected")
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_message(raw, websocket, services.registry, services.relay)
    except WebSocketDisconnect:
        logger.info("Live client disconnected")
    finally:
        services.registry.disconnect(websocket)
