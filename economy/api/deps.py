"""
Shared FastAPI dependencies
"""

from fastapi import Header, HTTPException, Request, status

from economy.core.config import settings
from economy.services.container import EconomyServices


def get_services(request: Request) -> EconomyServices:
    """Economy services built at startup and held on the app state"""
    return request.app.state.services


def get_current_user_id(x_user_id: str = Header(..., max_length=64)) -> str:
    """Caller identity, set by the upstream gateway after authentication"""
    if not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    return x_user_id


def require_admin(x_admin_key: str = Header(default=None)) -> None:
    if not settings.admin_api_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


def get_admin_actor(x_admin_id: str = Header(default="admin", max_length=64)) -> str:
    """Administrator recorded in audit logs"""
    return x_admin_id
