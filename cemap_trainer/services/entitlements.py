"""
Entitlement store: payment identifiers to product access tokens.

Issuance is idempotent on the payment-intent id. The database's unique
constraint on that column is what settles concurrent verifications; the
loser of an insert race re-reads the winner's token.
"""
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cemap_trainer.core.database import utcnow
from cemap_trainer.models.orm import AccessToken, Product

logger = logging.getLogger(__name__)

BUNDLE_VALIDITY_DAYS = 30
ADMIN_GRANT_PREFIX = "admin-grant-"


class EntitlementStore:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        bundle_validity_days: int = BUNDLE_VALIDITY_DAYS,
    ):
        self.db = db
        self.clock = clock
        self.bundle_validity = timedelta(days=bundle_validity_days)

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[AccessToken]:
        return self.db.scalar(
            select(AccessToken).where(AccessToken.payment_intent_id == payment_intent_id)
        )

    def issue_token(self, payment_intent_id: str, product: Product, user_id: str) -> AccessToken:
        """Mint the token for a verified payment, or return the one already minted."""
        existing = self.get_by_payment_intent(payment_intent_id)
        if existing is not None:
            logger.info("Replayed verification for %s; returning existing token", payment_intent_id)
            return existing

        product = Product(product)
        now = self.clock()
        expires_at = now + self.bundle_validity if product is Product.BUNDLE else None
        return self._insert(payment_intent_id, product, user_id, now, expires_at)

    def grant(self, user_id: str, days_valid: int, product: Product = Product.BUNDLE) -> AccessToken:
        """Issue a time-limited token without a payment (admin grant)."""
        now = self.clock()
        reference = f"{ADMIN_GRANT_PREFIX}{uuid.uuid4()}"
        return self._insert(reference, Product(product), user_id, now, now + timedelta(days=days_valid))

    def _insert(
        self,
        payment_intent_id: str,
        product: Product,
        user_id: str,
        now: datetime,
        expires_at: Optional[datetime],
    ) -> AccessToken:
        token = AccessToken(
            token=secrets.token_urlsafe(32),
            payment_intent_id=payment_intent_id,
            product=product.value,
            user_id=user_id,
            expires_at=expires_at,
            created_at=now,
        )
        self.db.add(token)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_payment_intent(payment_intent_id)
            if existing is None:
                raise
            logger.warning("Concurrent issuance for %s; using the stored token", payment_intent_id)
            return existing

        self.db.refresh(token)
        logger.info(
            "Issued %s token for user %s (payment %s, expires %s)",
            product.value, user_id, payment_intent_id, expires_at.isoformat() if expires_at else "never",
        )
        return token

    def check_access(self, user_id: str, product: Product) -> bool:
        """True if the user holds a live token for the product or a live bundle."""
        product = Product(product)
        now = self.clock()
        stmt = (
            select(AccessToken.id)
            .where(
                AccessToken.user_id == user_id,
                AccessToken.product.in_((product.value, Product.BUNDLE.value)),
                or_(AccessToken.expires_at.is_(None), AccessToken.expires_at > now),
            )
            .limit(1)
        )
        return self.db.scalar(stmt) is not None

    def list_tokens(self, user_id: str) -> List[AccessToken]:
        stmt = (
            select(AccessToken)
            .where(AccessToken.user_id == user_id)
            .order_by(AccessToken.created_at.desc(), AccessToken.id.desc())
        )
        return list(self.db.scalars(stmt))
