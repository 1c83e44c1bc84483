from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List, Optional
import jwt
from datetime import datetime, timedelta, timezone

from cemap_trainer.core.config import Settings
from cemap_trainer.core.database import get_db
from cemap_trainer.core.exceptions import AccessDeniedError, AuthenticationError
from cemap_trainer.models.orm import User

class TokenData(BaseModel):
    sub: str
    roles: List[str]

# auto_error=False so a missing header reaches our 401 rather than FastAPI's 403
bearer = HTTPBearer(auto_error=False)

def create_access_token(user_id: str, roles: List[str], settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "roles": roles,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)

def decode_access_token(token: str, settings: Settings) -> TokenData:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        return TokenData(sub=payload["sub"], roles=payload.get("roles", []))
    except (jwt.PyJWTError, KeyError):
        raise AuthenticationError("Invalid or expired token")

def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise AuthenticationError("Authentication required")
    data = decode_access_token(creds.credentials, request.app.state.settings)
    user = db.get(User, data.sub)
    if user is None:
        # Token outlived its account
        raise AuthenticationError("Invalid or expired token")
    return user

def require_roles(*required: str):
    def checker(user: User = Depends(get_current_user)) -> User:
        if not set(user.roles).intersection(required):
            raise AccessDeniedError("Insufficient role")
        return user
    return checker

require_admin = require_roles("admin")
