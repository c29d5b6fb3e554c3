import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.api.router import router
from app.db.session import build_engine, build_session_factory
from app.services.rating_queries import RatingQueryService
from app.services.rating_store import RatingStore
from app.services.settlement import SettlementCoordinator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings)
    engine = build_engine(settings)
    store = RatingStore(build_session_factory(engine), settings)
    app.state.rating_store = store
    app.state.settlement = SettlementCoordinator(store, settings)
    app.state.rating_queries = RatingQueryService(store)
    logger.info("rating engine ready (db=%s)", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        engine.dispose()


app = FastAPI(
    title="Chess Variants Rating Engine",
    version="0.1.0",
    lifespan=lifespan,
)

allowed_hosts = [h.strip() for h in settings.ALLOWED_HOSTS.split(",") if h.strip()]
if not allowed_hosts:
    allowed_hosts = ["*"]
app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response: Response = await call_next(request)
    if settings.SECURITY_HEADERS_ENABLED:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.ENV != "dev":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

app.include_router(router)

@app.get("/health")
def health():
    return {"ok": True}
