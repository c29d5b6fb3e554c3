from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.security import decode_token
from app.services.rating_queries import RatingQueryService
from app.services.rating_store import RatingStore
from app.services.settlement import SettlementCoordinator

bearer = HTTPBearer()


def get_current_user_id(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> str:
    # Sessions are issued by the auth service; only the access token is checked here.
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return str(user_id)


def get_store(request: Request) -> RatingStore:
    return request.app.state.rating_store


def get_settlement(request: Request) -> SettlementCoordinator:
    return request.app.state.settlement


def get_rating_queries(request: Request) -> RatingQueryService:
    return request.app.state.rating_queries
