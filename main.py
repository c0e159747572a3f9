#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main application entry point - chat relay for OpenAI-compatible APIs
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from chat_relay.config import settings
from chat_relay.helpers import info_log
from chat_relay.relay_api import router as relay_router
from chat_relay.services import network_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    info_log("Server listening on port %s", settings.PORT)
    yield
    await network_manager.cleanup_clients()


# Create FastAPI app
app = FastAPI(
    title="Chat Relay",
    description="Single-endpoint relay for OpenAI-compatible chat completions",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(relay_router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


# Static files last so they never shadow the API routes
app.mount(
    "/",
    StaticFiles(directory=settings.STATIC_DIR, html=True, check_dir=False),
    name="static",
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=False,
        log_level="info",
    )
