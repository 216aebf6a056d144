from typing import Optional
from arango.database import StandardDatabase
from arango.exceptions import DocumentParseError

from app.models.user import UserInDB

class UserCRUD:
    """User lookups. Accounts themselves are managed by the auth service."""

    def __init__(self, db: StandardDatabase):
        self.db = db
        self.collection = db.collection('users')

    def get_user_by_key(self, key: str) -> Optional[UserInDB]:
        """Retrieve user by document key."""
        try:
            user_data = self.collection.get(key)
        except DocumentParseError:
            return None
        if not user_data:
            return None
        return UserInDB.model_validate(user_data)

