from fastapi import HTTPException, Depends, status
from fastapi.security import OAuth2PasswordBearer
from arango.database import StandardDatabase

from app.models.user import User, UserRole
from app.crud.user import UserCRUD
from app.core.security import verify_token
from app.db.database import get_db

# Tokens are issued by the CollegeConnect auth service; this API only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_user_crud(db: StandardDatabase = Depends(get_db)) -> UserCRUD:
    """Get UserCRUD instance."""
    return UserCRUD(db)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    user_crud: UserCRUD = Depends(get_user_crud)
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if not payload:
        raise credentials_exception

    user_key = payload.get("sub")
    if not user_key:
        raise credentials_exception

    user = user_crud.get_user_by_key(user_key)
    if not user or not user.is_active:
        raise credentials_exception

    return User.model_validate(user.model_dump(by_alias=True))


def require_roles(*allowed: UserRole):
    """Dependency factory restricting an endpoint to the given roles."""
    async def _dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role"
            )
        return current_user
    return _dep
