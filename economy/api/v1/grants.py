"""
Grant (verification badge and VIP) API endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from economy.api.deps import get_current_user_id, get_services
from economy.models.enums import GrantKind
from economy.schemas.results import GrantRecord
from economy.services.container import EconomyServices

router = APIRouter()


class PurchaseRequest(BaseModel):
    """Grant purchase request model"""
    type: str = Field(..., description="Package type, e.g. BLUE or vip_monthly")


@router.get("/packages")
async def list_packages(
    kind: Optional[GrantKind] = None,
    services: EconomyServices = Depends(get_services)
):
    return services.grants.list_packages(kind)


@router.post("/purchase", response_model=GrantRecord)
async def purchase_grant(
    body: PurchaseRequest,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: str = Header(..., alias="Idempotency-Key", min_length=1, max_length=128),
    services: EconomyServices = Depends(get_services)
):
    """
    Buy a grant package. Rejected with 409 while a grant of the same kind is active.
    """
    return await services.grants.purchase(user_id, body.type, idempotency_key)


@router.get("/{kind}", response_model=GrantRecord)
async def get_my_grant(
    kind: GrantKind,
    user_id: str = Depends(get_current_user_id),
    services: EconomyServices = Depends(get_services)
):
    return await services.grants.get_grant(user_id, kind)
