#!/usr/bin/env python3
"""
Chat Sweeper Web Application
FastAPI server with WebSocket support for real-time progress updates
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chat_sweeper.config import Settings, setup_logging
from chat_sweeper.results import Err, Result
from chat_sweeper.service import SweeperService


settings = Settings.from_env()
LOG_LEVEL = setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

logger.info(f"Starting Chat Sweeper with log level: {LOG_LEVEL}")

app = FastAPI(title="Chat Sweeper", description="Bulk archive and delete your ChatGPT conversations")

# Global state
sweeper_service = SweeperService(settings)

# Error kind -> HTTP status
ERROR_STATUS = {
    "validation": 400,
    "authentication": 401,
    "network": 502,
    "classification_parse": 502,
}


class ConnectionManager:
    """Manage WebSocket connections"""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)

    async def broadcast(self, message_type: str, data: Dict):
        """Broadcast message to all connected clients"""
        message = {"type": message_type, "data": data}
        disconnected = set()

        for connection in list(self.active_connections):
            try:
                await connection.send_text(json.dumps(message))
                # Force immediate send without buffering
                await asyncio.sleep(0)
            except (WebSocketDisconnect, RuntimeError) as error:
                logger.debug(f"Dropping websocket client: {error!r}")
                disconnected.add(connection)

        # Remove disconnected clients
        for conn in disconnected:
            self.active_connections.discard(conn)


# WebSocket connection manager
manager = ConnectionManager()


# Progress callback for the sweeper service
async def progress_callback(message_type: str, data: Dict):
    """Forward service progress to WebSocket clients"""
    logger.debug(f"Progress callback: {message_type} - {data}")
    await manager.broadcast(message_type, data)


sweeper_service.set_progress_callback(progress_callback)


def respond(result: Result):
    """Render a service result, mapping error kinds onto HTTP statuses"""
    if isinstance(result, Err):
        return JSONResponse(status_code=ERROR_STATUS.get(result.kind, 500), content=result.to_dict())
    return result.to_dict()


# Request/Response models
class AuthRequest(BaseModel):
    curl: str


class ClassifyRequest(BaseModel):
    prompt: Optional[str] = None  # one-off prompt template, overrides the stored one


class CategoryRequest(BaseModel):
    category: str


class SelectionRequest(BaseModel):
    archive: List[str] = []
    delete: List[str] = []
    unmark: List[str] = []
    clear: bool = False  # applied before the other lists


class ApiKeyRequest(BaseModel):
    api_key: str


class PromptRequest(BaseModel):
    prompt: Optional[str] = None
    save: bool = True  # False keeps it for this session only


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# === Authentication ===

@app.post("/auth")
async def authenticate(request: AuthRequest):
    """Validate a captured cURL command and open a session"""
    logger.info("Received authentication request")
    return respond(await sweeper_service.authenticate(request.curl))


@app.post("/auth/reset")
def reset_session():
    """Forget the current session"""
    return respond(sweeper_service.reset())


# === Sync & Classification ===

@app.post("/sync")
async def sync_conversations():
    """Load the full conversation collection into the cache"""
    return respond(await sweeper_service.sync_conversations())


@app.post("/classify")
async def classify_conversations(request: Optional[ClassifyRequest] = None):
    """Categorize every cached conversation"""
    prompt = request.prompt if request else None
    return respond(await sweeper_service.classify_conversations(prompt))


# === Views ===

@app.get("/conversations")
def list_conversations(
    offset: Optional[int] = None,
    limit: Optional[int] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None
):
    """A flat, optionally filtered page of cached conversations"""
    if sort:
        sorted_result = sweeper_service.set_sort(sort)
        if isinstance(sorted_result, Err):
            return respond(sorted_result)
    return respond(sweeper_service.list_view(offset=offset, limit=limit, category=category))


@app.get("/conversations/grouped")
def grouped_conversations(offset: Optional[int] = None, limit: Optional[int] = None):
    """A page of classification results grouped by category"""
    return respond(sweeper_service.grouped_view(offset=offset, limit=limit))


@app.put("/conversations/{conversation_id}/category")
def set_conversation_category(conversation_id: str, request: CategoryRequest):
    """Move one conversation to another category"""
    return respond(sweeper_service.set_category(conversation_id, request.category))


@app.get("/categories")
def get_categories():
    return respond(sweeper_service.categories())


@app.get("/stats")
def get_stats():
    return respond(sweeper_service.stats())


# === Selection & Cleanup ===

@app.get("/selection")
def get_selection():
    return respond(sweeper_service.selection())


@app.post("/selection")
def update_selection(request: SelectionRequest):
    """Mark or unmark conversations for archive/delete"""
    if request.clear:
        result = sweeper_service.clear_selection()
        if isinstance(result, Err):
            return respond(result)

    steps = [
        (sweeper_service.mark_for_archive, request.archive),
        (sweeper_service.mark_for_delete, request.delete),
        (sweeper_service.unmark, request.unmark),
    ]
    for action, conversation_ids in steps:
        if not conversation_ids:
            continue
        result = action(conversation_ids)
        if isinstance(result, Err):
            return respond(result)

    return respond(sweeper_service.selection())


@app.post("/archive")
async def archive_selected():
    """Archive every conversation marked for archive"""
    return respond(await sweeper_service.archive_selected())


@app.post("/delete")
async def delete_selected():
    """Delete every conversation marked for delete"""
    return respond(await sweeper_service.delete_selected())


# === Settings ===

@app.post("/settings/api-key")
def set_api_key(request: ApiKeyRequest):
    return respond(sweeper_service.set_openai_key(request.api_key))


@app.get("/settings/prompt")
def get_prompt():
    """The prompt in effect and whether a key is configured"""
    return {"success": True, "data": sweeper_service.settings_summary()}


@app.post("/settings/prompt")
def set_prompt(request: PromptRequest):
    return respond(sweeper_service.set_custom_prompt(request.prompt, request.save))


@app.get("/settings/prompt/default")
def get_default_prompt():
    return {"success": True, "data": {"prompt": sweeper_service.config_store.get_default_prompt()}}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for real-time updates"""
    await manager.connect(websocket)

    try:
        while True:
            # Keep connection alive and handle any client messages
            data = await websocket.receive_text()
            await websocket.send_text(f"Message received: {data}")

    except WebSocketDisconnect:
        manager.disconnect(websocket)

# To run this application, use:
# uvicorn chat_sweeper.main:app --reload
