from typing import Callable, Iterator

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from src.domain.exceptions import ForbiddenError, UnauthorizedError
from src.domain.permissions import Actor, Permission, Role
from src.infrastructure.config import Settings
from src.infrastructure.gateways.mpesa_gateway import PaymentGateway


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


async def read_raw_body(request: Request) -> bytes:
    return await request.body()


def get_current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """
    Identity is established upstream; this service trusts the
    forwarded user id and role headers.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedError()

    try:
        role = Role((x_user_role or Role.USER.value).strip().upper())
    except ValueError as exc:
        raise UnauthorizedError("Unknown role") from exc

    return Actor(user_id=user_id, role=role)


def require_permission(permission: Permission) -> Callable[..., Actor]:
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.can(permission):
            raise ForbiddenError(f"{permission.value} permission required")
        return actor

    return dependency
