"""
Wallet API endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from economy.api.deps import get_current_user_id, get_services
from economy.services.container import EconomyServices

router = APIRouter()


class WalletBalance(BaseModel):
    """Wallet balance response model"""
    user_id: str
    balance: int
    diamonds: int


@router.get("/", response_model=WalletBalance)
async def get_wallet_balance(
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    """
    Get current user's wallet balances, creating the wallet on first access.
    """
    wallet = await services.ledger.get_wallet(user_id)
    return WalletBalance(user_id=user_id, balance=wallet.balance, diamonds=wallet.diamonds)


@router.get("/transactions")
async def get_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    return await services.ledger.get_history(user_id, limit=limit, offset=offset, entry_type=type)


@router.get("/stats")
async def get_wallet_stats(
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    return await services.ledger.get_stats(user_id)
