"""
Admin API endpoints - grants, wallet adjustments and sweep controls
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from economy.api.deps import get_admin_actor, get_services, require_admin
from economy.models.enums import Currency, GrantKind
from economy.repos import audit_log_repo
from economy.schemas.results import GrantRecord, SweepReport
from economy.services.container import EconomyServices

router = APIRouter(dependencies=[Depends(require_admin)])


class AdminGrantRequest(BaseModel):
    """Administrative grant request model"""
    user_id: str = Field(..., max_length=64)
    type: str = Field(..., description="Package type")
    duration_days: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = Field(None, max_length=255)


class AdjustBalanceRequest(BaseModel):
    """Administrative balance adjustment request model"""
    amount: int = Field(..., description="Signed amount, non-zero")
    currency: Currency = Currency.COINS
    reason: str = Field(..., min_length=1, max_length=255)


@router.post("/grants", response_model=GrantRecord)
async def admin_grant(
    body: AdminGrantRequest,
    actor_id: str = Depends(get_admin_actor),
    services: EconomyServices = Depends(get_services)
):
    return await services.grants.admin_grant(
        body.user_id, body.type, actor_id, duration_days=body.duration_days, reason=body.reason
    )


@router.delete("/grants/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_revoke(
    user_id: str,
    kind: GrantKind = GrantKind.VERIFICATION,
    reason: Optional[str] = None,
    actor_id: str = Depends(get_admin_actor),
    services: EconomyServices = Depends(get_services)
):
    await services.grants.revoke(user_id, actor_id, reason=reason, kind=kind)


@router.post("/wallets/{user_id}/adjust")
async def adjust_balance(
    user_id: str,
    body: AdjustBalanceRequest,
    actor_id: str = Depends(get_admin_actor),
    services: EconomyServices = Depends(get_services)
):
    entry = await services.ledger.admin_adjust(user_id, body.amount, actor_id, body.reason, currency=body.currency)
    return entry.to_dict()


@router.get("/wallets/{user_id}/reconcile")
async def reconcile_wallet(user_id: str, services: EconomyServices = Depends(get_services)):
    return await services.ledger.reconcile(user_id)


@router.get("/audit-logs")
async def list_audit_logs(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    action: Optional[str] = None,
    target_id: Optional[str] = None,
    services: EconomyServices = Depends(get_services)
):
    async with services.ledger.session_factory() as session:
        logs = await audit_log_repo.get_audit_logs(
            session, limit=limit, offset=offset, action=action, target_id=target_id
        )
    return [log.to_dict() for log in logs]


@router.post("/cleanup/trigger", response_model=SweepReport)
async def trigger_cleanup(services: EconomyServices = Depends(get_services)):
    """Run every sweep task now and return per-task counts."""
    return await services.scheduler.trigger_cleanup()


@router.get("/cleanup/preview")
async def preview_cleanup(services: EconomyServices = Depends(get_services)):
    return await services.sweeper.preview()


@router.get("/scheduler/jobs")
async def list_jobs(services: EconomyServices = Depends(get_services)):
    return services.scheduler.list()


@router.post("/scheduler/jobs/{name}/start")
async def start_job(name: str, services: EconomyServices = Depends(get_services)):
    return {"name": name, "started": services.scheduler.start(name)}


@router.post("/scheduler/jobs/{name}/stop")
async def stop_job(name: str, services: EconomyServices = Depends(get_services)):
    return {"name": name, "stopped": services.scheduler.stop(name)}


@router.post("/scheduler/jobs/{name}/run", response_model=SweepReport)
async def run_job(name: str, services: EconomyServices = Depends(get_services)):
    return await services.scheduler.run_now(name)
