"""Repository for delivery tokens."""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, update

from ..models import DeliveryToken
from ..exceptions import TokenInvalidError
from .base import BaseRepository


class TokenRepository(BaseRepository[DeliveryToken]):
    model_class = DeliveryToken
    not_found_error = staticmethod(lambda _id: TokenInvalidError())

    def get_by_token(self, token: str) -> Optional[DeliveryToken]:
        return self.db.query(DeliveryToken).filter(DeliveryToken.token == token).first()

    def consume(self, token_id: str, now: datetime) -> bool:
        """Flip ``used`` from False to True in one conditional UPDATE.

        Returns True only for the caller whose statement changed the row.
        Two concurrent redemptions of the same token cannot both succeed:
        the loser's WHERE clause no longer matches. Does not commit.
        """
        result = self.db.execute(
            update(DeliveryToken)
            .where(DeliveryToken.id == token_id, DeliveryToken.used.is_(False))
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_stale(self, now: datetime, used_before: datetime) -> int:
        """Delete expired tokens and tokens consumed before *used_before*.

        Does not commit; returns the number of rows deleted.
        """
        return (
            self.db.query(DeliveryToken)
            .filter(
                or_(
                    DeliveryToken.expires_at < now,
                    and_(DeliveryToken.used.is_(True), DeliveryToken.used_at < used_before),
                )
            )
            .delete(synchronize_session=False)
        )
