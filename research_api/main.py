import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from research_api.api.router import api_router
from research_api.core.config import settings
from research_api.core.research.backend import AnthropicBackend

logger = logging.getLogger(__name__)


# Create the backend client once and close it when the app shuts down
@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.backend = AnthropicBackend.from_settings(settings)
    if app.state.backend is not None:
        logger.info("Generative backend ready")

    yield
    if app.state.backend is not None:
        await app.state.backend.close()


app = FastAPI(title="Synthetic Research API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Synthetic Research API"}
