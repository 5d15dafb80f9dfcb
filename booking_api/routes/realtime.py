# booking_api/routes/realtime.py
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
import logging
from booking_api.auth.dependencies import decode_access_token
from booking_api.realtime.manager import ConnectionManager, get_connection_manager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])

@router.websocket("/ws/notifications")
async def notifications(
    websocket: WebSocket,
    token: str = Query(...),
    connections: ConnectionManager = Depends(get_connection_manager)
):
    """Push channel: joins the caller's user room and company room"""
    try:
        user = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    rooms = [f"user:{user.sub}"]
    if user.company_id:
        rooms.append(f"company:{user.company_id}")

    await connections.connect(websocket, rooms)
    try:
        # Inbound frames are only keep-alives
        while True:
            if await websocket.receive_text() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        logger.info(f"Realtime client {user.sub} disconnected")
    finally:
        await connections.disconnect(websocket)
