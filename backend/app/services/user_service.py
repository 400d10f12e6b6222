"""
Customer accounts touched by checkout

Guest checkout identifies the customer by email. An unknown email gets a
regular account with a random password; the customer can claim it later
through a password reset handled by the auth service.
"""

from typing import Any

from sqlmodel import Session, func, select

from app.core.logging import get_logger
from app.core.security import generate_guest_password, hash_password
from app.models import User, UserRole

logger = get_logger(__name__)


class UserService:
    @staticmethod
    def get_by_email(session: Session, email: str) -> User | None:
        return session.exec(
            select(User).where(func.lower(User.email) == email.strip().lower())
        ).first()

    @staticmethod
    def find_or_create_guest(
        session: Session, *, email: str, name: str, phone: str | None
    ) -> User:
        """
        Return the account for ``email``, creating it when missing.
        Only flushes; the order commit persists a new account.
        """
        user = UserService.get_by_email(session, email)
        if user is not None:
            logger.debug("guest_checkout_existing_user", user_id=str(user.id))
            return user

        user = User(
            name=name,
            email=email.strip().lower(),
            phone=phone,
            role=UserRole.USER.value,
            password_hash=hash_password(generate_guest_password()),
        )
        session.add(user)
        session.flush()
        logger.info("guest_user_created", user_id=str(user.id))
        return user

    @staticmethod
    def save_shipping_address(session: Session, user: User, address: dict[str, Any]) -> None:
        # JSON columns only persist on reassignment
        existing = list(user.shipping_addresses or [])
        if address in existing:
            return
        user.shipping_addresses = existing + [address]
        session.add(user)
