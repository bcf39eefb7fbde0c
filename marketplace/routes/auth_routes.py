from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.auth import jwt_handler
from marketplace.auth.dependencies import get_current_user
from marketplace.core import config
from marketplace.models.user import User
from marketplace.routes.common import DATABASE_UNAVAILABLE_DETAIL, get_db

router = APIRouter(tags=['auth'])


class TokenRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


@router.post("/token")
def issue_token(data: TokenRequest, db: Session = Depends(get_db)):
    # Production tokens come from the identity provider, not from this endpoint.
    if config.is_production():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    try:
        user = db.query(User).filter(User.email == data.email).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    token = jwt_handler.create_access_token(subject=user.email, user_type=user.user_type)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "name": current_user.name,
        "email": current_user.email,
        "user_type": current_user.user_type,
    }
