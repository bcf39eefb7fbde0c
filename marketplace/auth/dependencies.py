import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.auth import jwt_handler
from marketplace.models.user import USER_TYPE_CLIENT, USER_TYPE_PROVIDER, User
from marketplace.routes.common import DATABASE_UNAVAILABLE_DETAIL, get_db

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_provider(current_user: User = Depends(get_current_user)) -> User:
    if current_user.user_type != USER_TYPE_PROVIDER:
        raise HTTPException(status_code=403, detail="Only providers can perform this action.")
    return current_user


def require_client(current_user: User = Depends(get_current_user)) -> User:
    if current_user.user_type != USER_TYPE_CLIENT:
        raise HTTPException(status_code=403, detail="Only clients can book appointments.")
    return current_user
