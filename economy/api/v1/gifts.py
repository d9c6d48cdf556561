"""
Gift API endpoints
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field

from economy.api.deps import get_current_user_id, get_services
from economy.schemas.results import GiftSendResult
from economy.services.container import EconomyServices

router = APIRouter()


class SendGiftRequest(BaseModel):
    """Send gift request model"""
    receiver_id: str = Field(..., max_length=64, description="Receiving user")
    gift_id: UUID = Field(..., description="Catalog gift")
    quantity: int = Field(default=1, ge=1, description="Number of units")
    room_id: Optional[UUID] = Field(None, description="Room the gift is sent in")
    message: Optional[str] = Field(None, max_length=255, description="Optional note")


@router.post("/send", response_model=GiftSendResult)
async def send_gift(
    body: SendGiftRequest,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: str = Header(..., alias="Idempotency-Key", min_length=1, max_length=128),
    services: EconomyServices = Depends(get_services)
):
    """
    Send a gift. Repeating a request with the same Idempotency-Key returns the
    original result with ``replayed: true``.
    """
    return await services.gifts.send_gift(
        sender_id=user_id,
        receiver_id=body.receiver_id,
        gift_id=body.gift_id,
        quantity=body.quantity,
        room_id=body.room_id,
        idempotency_key=idempotency_key,
        message=body.message,
    )


@router.get("/sent")
async def get_sent_gifts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    return await services.gifts.get_sent_gifts(user_id, limit=limit, offset=offset)


@router.get("/received")
async def get_received_gifts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    return await services.gifts.get_received_gifts(user_id, limit=limit, offset=offset)


@router.get("/leaderboard")
async def get_leaderboard(
    by: str = Query("senders", pattern="^(senders|receivers)$"),
    limit: int = Query(10, ge=1, le=100),
    services: EconomyServices = Depends(get_services)
):
    return await services.gifts.get_leaderboard(by=by, limit=limit)
