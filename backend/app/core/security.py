from datetime import datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings

ALGO = "HS256"

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

# Tokens are issued by the auth service; this one exists for scripts and tests.
def create_access_token(sub: str, minutes: int = 60, secret: str | None = None) -> str:
    exp = now_utc() + timedelta(minutes=minutes)
    payload = {"sub": sub, "type": "access", "exp": exp}
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=ALGO)

def decode_token(token: str, secret: str | None = None) -> dict:
    return jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[ALGO])
