# app/dependencies.py

import logging
from typing import Iterator
from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.crud import user as crud_user
from app.db.session import SessionLocal
from app.models.user import User
from app.services.auth import decode_user_id

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=True)


def get_db() -> Iterator[Session]:
    """Сессия БД на время запроса."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Iterator[Session]:
    """То же, что get_db, но для планировщика и скриптов."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Пользователь из Bearer-токена (sub = ID в нашей БД).
    Невалидный токен или неизвестный пользователь - 401.
    """
    user_id = decode_user_id(credentials.credentials)
    user = crud_user.get_user_by_id(db, user_id) if user_id is not None else None
    if user is None:
        logger.warning(f"Rejected token for user_id={user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.user = user
    return user


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Доступ к админским эндпоинтам только для is_admin."""
    if not current_user.is_admin:
        logger.warning(f"Permission denied for user {current_user.id}: not an admin.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to access this resource."
        )
    return current_user
