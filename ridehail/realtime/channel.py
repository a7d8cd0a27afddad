"""
Live-channel dispatch: one inbound text frame -> registry / relay call.

Malformed frames are logged and dropped; the connection stays open.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .messages import LiveMessage, LocationUpdatePayload, MessageType
from .registry import Connection, SubscriptionRegistry
from .relay import LocationRelay

logger = logging.getLogger(__name__)


async def handle_message(
    raw: str,
    connection: Connection,
    registry: SubscriptionRegistry,
    relay: LocationRelay,
) -> None:
    try:
        message = LiveMessage.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Invalid live-channel message: %s", exc.errors()[0]["msg"])
        return

    if message.type is MessageType.SUBSCRIBE:
        if not message.ride_id:
            return
        # snapshot and subscription in one step: no sample can slip between
        registry.subscribe(
            connection, message.ride_id, relay.snapshot(message.ride_id)
        )

    elif message.type is MessageType.UNSUBSCRIBE:
        registry.unsubscribe(connection)

    elif message.type is MessageType.LOCATION_UPDATE:
        if not message.ride_id or message.data is None:
            return
        try:
            payload = LocationUpdatePayload.model_validate(message.data)
        except ValidationError as exc:
            logger.warning("Invalid location sample for ride %s: %s",
                           message.ride_id, exc.errors()[0]["msg"])
            return
        await relay.ingest(message.ride_id, payload.to_sample(), origin=connection)

    else:
        logger.debug("Ignoring client-sent %s", message.type.value)
