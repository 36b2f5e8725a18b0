import logging

from fastapi import FastAPI

from biostate.api import interactions, state
from biostate.config import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Biological State API",
    description="Supplement interaction, ratio, timing and kinetics engine",
    version="0.1.0",
)

app.include_router(state.router, prefix="/state", tags=["state"])
app.include_router(interactions.router, prefix="/interactions", tags=["interactions"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
