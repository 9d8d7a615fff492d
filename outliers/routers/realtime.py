"""WebSocket endpoint bridging the change feed to remote clients."""
from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from ..services import ChangeEvent, ChangeType, Subscription, change_feed, decode_access_token

router = APIRouter(prefix="/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)

SUBSCRIBABLE_TABLES = frozenset({"messages", "message_likes"})


def _event_payload(subscription_id: str, event: ChangeEvent) -> dict[str, Any]:
    return jsonable_encoder(
        {
            "type": "change",
            "subscription": subscription_id,
            "table": event.table,
            "event": event.type.value,
            "new": event.new,
            "old": event.old,
            "commit_timestamp": event.commit_timestamp,
        }
    )


async def _subscribe(websocket: WebSocket, viewer_id: UUID, payload: dict[str, Any]) -> Subscription:
    table = str(payload.get("table") or "")
    if table not in SUBSCRIBABLE_TABLES:
        raise ValueError(f"Unknown table: {table}")
    events = [ChangeType(str(item).upper()) for item in payload.get("events") or []] or None
    filters = payload.get("filter") or {}
    if not isinstance(filters, dict):
        raise ValueError("filter must be an object")

    subscription: Subscription | None = None

    async def _forward(event: ChangeEvent) -> None:
        await websocket.send_text(json.dumps(_event_payload(subscription.id if subscription else "", event)))

    subscription = await change_feed.subscribe(table, _forward, events=events, filters=filters, viewer_id=viewer_id)
    return subscription


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str = Query(..., alias="token")) -> None:
    try:
        viewer_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscriptions: dict[str, Subscription] = {}
    logger.info("Realtime socket connected for %s", viewer_id)
    try:
        await websocket.send_text(json.dumps({"type": "ready"}))
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {"type": ""}

            message_type = str(payload.get("type") or "").strip().lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "subscribe":
                try:
                    subscription = await _subscribe(websocket, viewer_id, payload)
                except ValueError as exc:
                    await websocket.send_text(json.dumps({"type": "error", "detail": str(exc)}))
                    continue
                subscriptions[subscription.id] = subscription
                await websocket.send_text(json.dumps({"type": "subscribed", "id": subscription.id}))
            elif message_type == "unsubscribe":
                subscription_id = str(payload.get("id") or "")
                subscription = subscriptions.pop(subscription_id, None)
                if subscription is not None:
                    await subscription.release()
                await websocket.send_text(json.dumps({"type": "unsubscribed", "id": subscription_id}))
    finally:
        for subscription in subscriptions.values():
            await subscription.release()
        logger.info("Realtime socket disconnected for %s", viewer_id)


__all__ = ["router"]
