from typing import Dict

from fastapi import Depends, HTTPException, Request
from google.oauth2 import id_token
from google.auth.transport.requests import Request as GoogleRequest
from sqlmodel import Session, select

from . import config
from .database import get_session
from .models import User, UserStatus


def _verify_firebase_token(request: Request) -> Dict:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not config.FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=500, detail="FIREBASE_PROJECT_ID not configured")
    token = auth.split(" ", 1)[1]
    try:
        info = id_token.verify_firebase_token(token, GoogleRequest(), audience=config.FIREBASE_PROJECT_ID)
        return info
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid Firebase token")


def resolve_user(session: Session, info: Dict) -> User:
    """Find the profile for verified token claims, creating it on first sign-in."""
    email = (info.get("email") or "").strip().lower()
    if not email:
        raise HTTPException(status_code=401, detail="Token missing email")
    firebase_uid = info.get("user_id") or info.get("sub")

    user = session.exec(select(User).where(User.email == email)).first()
    if not user:
        user = User(
            firebase_uid=firebase_uid,
            name=info.get("name") or "New User",
            email=email,
            avatar_url=info.get("picture"),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
    elif user.status == UserStatus.INVITED:
        # placeholder created by a parent; claim it
        user.firebase_uid = firebase_uid
        user.status = UserStatus.ACTIVE
        if info.get("name"):
            user.name = info["name"]
        session.add(user)
        session.commit()
        session.refresh(user)
    return user


def get_current_user_id(
    info: Dict = Depends(_verify_firebase_token),
    session: Session = Depends(get_session),
) -> int:
    return resolve_user(session, info).id
