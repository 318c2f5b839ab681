"""
WebSocket API Route

Handles:
- Realtime change feed for products and bids
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fyndak.infrastructure.notifier import ALL_EVENTS, validate_channel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websockets"])


@router.websocket("/ws/{table}")
async def change_feed(websocket: WebSocket, table: str, event: str = ALL_EVENTS):
    """
    Stream change events for a table

    Args:
        table: "products" or "bids"
        event: "INSERT", "UPDATE", "DELETE" or "*"
    """
    event = event.upper()
    try:
        validate_channel(table, event)
    except ValueError as e:
        await websocket.close(code=1008, reason=str(e))
        return

    notifier = websocket.app.state.context.notifier
    await notifier.add_connection(websocket, table, event)

    try:
        await websocket.send_json({
            "type": "CONNECTED",
            "table": table,
            "event": event,
            "viewers": notifier.get_connection_count(table)
        })

        # Keep connection alive
        while True:
            await websocket.receive_text()
            await websocket.send_json({"type": "PONG"})

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from {table} feed")

    finally:
        notifier.remove_connection(websocket, table, event)
