"""
Account service: registration, login and the admin view of users.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List

from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cemap_trainer.core.database import utcnow
from cemap_trainer.core.exceptions import AuthenticationError, DuplicateEmailError, UserNotFoundError
from cemap_trainer.models.orm import AccessToken, HighScore, Product, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    def __init__(
        self,
        db: Session,
        admin_emails: Iterable[str] = (),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.admin_emails = {normalize_email(e) for e in admin_emails}
        self.clock = clock

    def get_by_email(self, email: str):
        return self.db.scalar(select(User).where(User.email == normalize_email(email)))

    def get(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"User not found: {user_id}")
        return user

    def register(self, email: str, password: str, name: str) -> User:
        email = normalize_email(email)
        if self.get_by_email(email) is not None:
            raise DuplicateEmailError(email)

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            is_admin=email in self.admin_emails,
            created_at=self.clock(),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            self.db.rollback()
            raise DuplicateEmailError(email) from e

        self.db.refresh(user)
        logger.info("Registered user %s%s", user.id, " (admin)" if user.is_admin else "")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    def delete(self, user_id: str) -> None:
        user = self.get(user_id)
        self.db.delete(user)
        self.db.commit()
        logger.info("Deleted user %s", user_id)

    def list_users(self) -> List[User]:
        return list(self.db.scalars(select(User).order_by(User.created_at.desc(), User.email)))

    def stats(self) -> Dict[str, object]:
        rows = self.db.execute(
            select(AccessToken.product, func.count(AccessToken.id)).group_by(AccessToken.product)
        ).all()
        tokens_by_product = {p.value: 0 for p in Product}
        tokens_by_product.update({product: n for product, n in rows})
        return {
            "users": self.db.scalar(select(func.count(User.id))) or 0,
            "tokens_by_product": tokens_by_product,
            "high_scores": self.db.scalar(select(func.count(HighScore.id))) or 0,
        }
