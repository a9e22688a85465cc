import logging
from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from passwordless.core.errors import StorageFailure
from passwordless.core.timezone import get_utc_now
from passwordless.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FindOrCreateResult:
    user_id: str
    is_new_user: bool


class UserDirectory:
    """Resolves an email address to a user, creating the user on first sight"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str):
        return self.db.query(User).filter(User.email == email).first()

    def find_or_create(self, email: str) -> FindOrCreateResult:
        """
        Look up a user by exact email, inserting one if absent.

        The email must already be trimmed and syntactically valid. A
        concurrent insert of the same email surfaces as an IntegrityError on
        the unique index; the loser rolls back and re-reads the winner's row.
        """
        try:
            existing = self.find_by_email(email)
            if existing:
                return FindOrCreateResult(user_id=existing.id, is_new_user=False)

            user = User(id=str(uuid4()), email=email, created_at=get_utc_now())
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_by_email(email)
            if existing is None:
                raise StorageFailure("user insert conflicted but no row found")
            logger.info("Concurrent signup for existing email resolved to user %s", existing.id)
            return FindOrCreateResult(user_id=existing.id, is_new_user=False)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("User lookup failed: %s", str(e))
            raise StorageFailure("user lookup failed") from e

        logger.info("Created user %s", user.id)
        return FindOrCreateResult(user_id=user.id, is_new_user=True)
