import re
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from jwt.exceptions import InvalidTokenError
import jwt

from db import database
from repository.game_state_repo import StateStore
from repository.kv_store import SqlKeyValueStore
from config import settings

# Tokens los emite el servicio de cuentas; acá solo se validan
bearer_scheme = HTTPBearer(auto_error=False)

SECRET_KEY = settings.SECRET_KEY.get_secret_value()
ALGORITHM = settings.ALGORITHM

ANONYMOUS_ID_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_user_id_optional(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[str]:
    """`sub` of a valid bearer token, or None. Invalid tokens fall back to anonymous play."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except InvalidTokenError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub is not None else None


def get_player_id(
    user_id: Annotated[Optional[str], Depends(get_user_id_optional)],
    x_anonymous_id: Optional[str] = Header(None, alias="X-Anonymous-Id"),
) -> str:
    # Si hay user válido -> usar user id. Si no -> X-Anonymous-Id
    if user_id:
        return f"user-{user_id}"

    if x_anonymous_id:
        if len(x_anonymous_id) > 64 or not ANONYMOUS_ID_PATTERN.match(x_anonymous_id):
            raise HTTPException(status_code=400, detail="Invalid anonymous ID format")
        return f"anon-{x_anonymous_id}"

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Must provide Authorization token or X-Anonymous-Id header",
    )


def get_state_store(
    db: Annotated[Session, Depends(get_db)],
    player_id: Annotated[str, Depends(get_player_id)],
) -> StateStore:
    return StateStore(
        SqlKeyValueStore(db, player_id),
        prefix=settings.STORAGE_KEY_PREFIX,
        retention_days=settings.RETENTION_DAYS,
    )
