import uuid
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.clients.paystack_client import PaystackClient, paystack_client
from app.core.db import engine
from app.core.errors import AuthorizationError
from app.core.redis import RedisClient, redis_client
from app.core.security import decode_access_token
from app.models import User
from app.services.notification_service import NotificationService, notification_service

bearer_scheme = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def get_redis() -> RedisClient:
    return redis_client


def get_payment_gateway() -> PaystackClient:
    return paystack_client


def get_notifier() -> NotificationService:
    return notification_service


RedisDep = Annotated[RedisClient, Depends(get_redis)]
SessionDep = Annotated[Session, Depends(get_db)]
PaymentGatewayDep = Annotated[PaystackClient, Depends(get_payment_gateway)]
NotifierDep = Annotated[NotificationService, Depends(get_notifier)]


def get_current_user(
    session: SessionDep,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> User:
    payload = decode_access_token(credentials.credentials)
    raw_id = payload.get("id") or payload.get("sub")
    try:
        user_id = uuid.UUID(str(raw_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_current_admin(user: CurrentUser) -> User:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user


AdminUser = Annotated[User, Depends(get_current_admin)]
