"""
FastAPI application entrypoint.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
import api.routes as routes

logging.basicConfig(level=getattr(logging, routes.settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # release the camera / detector if a live run is still going
    if routes.live_analyzer.running:
        logger.info("[api] shutdown: stopping live analyzer")
        routes.live_analyzer.stop()


app = FastAPI(title="Face Mood Monitor API", version="1.0.0", lifespan=lifespan)
app.include_router(routes.router)

@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Simple status payload.
    """
    return {"status": "ok"}
