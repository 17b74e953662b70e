# Run from project root: uvicorn nlsearch.main:app --reload --port 8080

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from nlsearch.api.handlers import handle_invalid_body
from nlsearch.api.routes import router
from nlsearch.core.config import (
    FRONTEND_DIR,
    LOG_LEVEL,
    PORT,
    SOURCEGRAPH_TOKEN,
    SOURCEGRAPH_URL,
    validate_config,
)
from nlsearch.services.deepsearch_client import DeepSearchClient

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Deep Search client at startup; refuse to start without a token."""
    validate_config()
    client = DeepSearchClient(SOURCEGRAPH_URL, SOURCEGRAPH_TOKEN)
    app.state.deepsearch_client = client
    logger.info("Using Sourcegraph instance: %s", SOURCEGRAPH_URL)
    try:
        yield
    finally:
        client.close()


app = FastAPI(title="Natural Language Code Search", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)
app.add_exception_handler(RequestValidationError, handle_invalid_body)
app.include_router(router)

if FRONTEND_DIR and Path(FRONTEND_DIR).is_dir():
    app.mount("/", StaticFiles(directory=FRONTEND_DIR, html=True), name="frontend")


if __name__ == "__main__":
    logger.info("Server starting on http://localhost:%d", PORT)
    uvicorn.run(app, host="0.0.0.0", port=PORT)
