import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.auth.actor import Actor
from backend.database import SessionLocal
from backend.models.user import Role, User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def actor_from_user(user: User) -> Actor:
    try:
        role = Role(user.role)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Unsupported role") from exc
    return Actor(user_id=user.id, role=role)


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Resolve the bearer token to an actor; the role always comes from the users table."""
    try:
        user_id = jwt_handler.user_id_from_token(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return actor_from_user(user)
