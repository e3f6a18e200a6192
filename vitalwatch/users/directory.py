"""Users directory backed by the auth service's ``users`` table.

The alerting core never writes users; it only needs an email address and
a display name to address notifications. The table is owned elsewhere,
so there is no ``ensure_table`` here.
"""

import logging
from dataclasses import dataclass
from typing import Any

from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubjectUser:
    """The person an alert is about."""

    user_id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        return self.first_name or "User"


class UserDirectory:
    """Looks up subject users by id."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, user_id: str) -> SubjectUser | None:
        sql = """
            SELECT user_id, email, first_name, last_name
            FROM users
            WHERE user_id = $1
        """
        row = await self._db.fetchrow(sql, user_id)
        if row is None:
            return None
        return _row_to_user(row)

    async def get_or_placeholder(self, user_id: str) -> SubjectUser:
        """Return the user, or an email-less placeholder if unknown."""
        user = await self.get(user_id)
        if user is None:
            logger.info("User %s not found in directory", user_id)
            return SubjectUser(user_id=user_id)
        return user


def _row_to_user(row: Any) -> SubjectUser:
    return SubjectUser(
        user_id=row["user_id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
    )
