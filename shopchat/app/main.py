#!/usr/bin/env python3
"""
Main FastAPI application for the storefront chatbot.

The API is stateless: the client sends the whole transcript (and the memory it
got back last time) with every request.
"""

import threading

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Config
from .controller import Controller
from ..schemas.io_models import ChatRequest, ChatResponse, RunpodInput, RunpodOutput
from ..utils.logger import get_logger

logger = get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Shop Chatbot API",
    description="Guarded multi-agent chatbot for a storefront",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_controller = None
_controller_lock = threading.Lock()


def get_controller() -> Controller:
    """Shared controller; its components are built on the first request."""
    global _controller
    if _controller is None:
        with _controller_lock:
            if _controller is None:
                _controller = Controller()
    return _controller


@app.post("/chat", response_model=ChatResponse)
def chat(request: ChatRequest, controller: Controller = Depends(get_controller)):
    """
    Answer the latest user message in the transcript.
    """
    return controller.handle(request)


@app.post("/runsync", response_model=RunpodOutput)
def runsync(request: RunpodInput, controller: Controller = Depends(get_controller)):
    """RunPod-style envelope around /chat."""
    return RunpodOutput(output=controller.handle(request.input))


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    Config.validate()
    Config.debug_print()
    uvicorn.run(app, host="0.0.0.0", port=8000)
