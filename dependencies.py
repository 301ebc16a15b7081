from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from database import get_db
from exceptions import AuthenticationError
from models.User import User
from schemas.UserSchemas import Actor
from services.event_publisher import EventPublisher, LoggingEventPublisher
from utils import decode_access_token

# Tokens are minted by the identity service; this API only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def get_current_actor(
        token: Optional[str] = Depends(oauth2_scheme),
        db: Session = Depends(get_db),
) -> Actor:
    if token is None:
        raise AuthenticationError()

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.exceptions.PyJWTError:
        raise AuthenticationError("Invalid token")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise AuthenticationError("Invalid token")

    user = db.get(User, int(subject))
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return Actor(id=user.id, username=user.username, role=user.role)


def get_event_publisher(request: Request) -> EventPublisher:
    publisher = getattr(request.app.state, "event_publisher", None)
    if publisher is None:
        publisher = LoggingEventPublisher()
        request.app.state.event_publisher = publisher
    return publisher
