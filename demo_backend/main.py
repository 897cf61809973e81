"""
Demo dashboard backend: sign-in/refresh, orders, inventory, dashboard summary and the
change-event socket. Port 8100, matching the dashboard client's default base URL.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from demo_backend.auth_routes import router as auth_router
from demo_backend.dashboard import router as dashboard_router
from demo_backend.database import init_db, session_scope
from demo_backend.events import router as events_router
from demo_backend.inventory import router as inventory_router
from demo_backend.keys import get_signing_key
from demo_backend.orders import router as orders_router
from demo_backend.seed import seed_from_env

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, load signing key, seed inventory and customer from env on startup."""
    init_db()
    get_signing_key()
    with session_scope() as db:
        seed_from_env(db)
    logger.info("Demo backend ready")
    yield


app = FastAPI(title="Dashboard Demo Backend", version="0.1.0", lifespan=lifespan)
app.include_router(auth_router, tags=["auth"])
app.include_router(orders_router, tags=["orders"])
app.include_router(inventory_router, tags=["inventory"])
app.include_router(dashboard_router, tags=["dashboard"])
app.include_router(events_router, tags=["events"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "demo_backend"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "demo_backend.main:app",
        host="127.0.0.1",
        port=8100,
        reload=True,
    )
