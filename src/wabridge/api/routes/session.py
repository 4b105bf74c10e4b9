"""WhatsApp session administration.

GET  /whatsapp/status   → connection state
GET  /whatsapp/qr       → pending pairing code (404 when none)
POST /whatsapp/start    → bootstrap instance and connect
POST /whatsapp/stop     → disconnect
POST /whatsapp/logout   → logout and forget the device (always 200)
POST /whatsapp/send     → send a text message

All routes require the admin API key.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from wabridge.api.auth import require_admin_key
from wabridge.errors import (
    InvalidPhoneNumber,
    NotConnected,
    QRNotAvailable,
    SendFailed,
    TransportError,
)
from wabridge.whatsapp.service import get_service

router = APIRouter(
    prefix="/whatsapp",
    tags=["whatsapp"],
    dependencies=[Depends(require_admin_key)],
)


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phone: str = Field(min_length=1)
    message: str = Field(min_length=1)


@router.get("/status")
def session_status() -> dict:
    snapshot = get_service().snapshot()
    return {
        "state": snapshot.state.value,
        "connected": snapshot.state.value == "connected",
        "qr_available": snapshot.has_qr,
        "device_registered": snapshot.has_device,
    }


@router.get("/qr")
def qr_code() -> dict:
    """Return the pending QR code for device pairing."""
    try:
        return {"qr_code": get_service().get_qr_code()}
    except QRNotAvailable:
        raise HTTPException(status_code=404, detail="QR code not available")


@router.post("/start")
def start_session() -> dict:
    try:
        get_service().start()
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "started", "state": get_service().state.value}


@router.post("/stop")
def stop_session() -> dict:
    get_service().stop()
    return {"status": "stopped"}


@router.post("/logout")
def logout_session() -> dict:
    get_service().logout()
    return {"status": "logged_out"}


@router.post("/send")
def send_message(body: SendMessageRequest) -> dict:
    try:
        receipt = get_service().send_message(body.phone, body.message)
    except NotConnected:
        raise HTTPException(status_code=409, detail="whatsapp not connected")
    except InvalidPhoneNumber:
        raise HTTPException(status_code=400, detail="invalid phone number")
    except SendFailed:
        raise HTTPException(status_code=502, detail="failed to send message")
    return {"status": "sent", "message_id": receipt}
