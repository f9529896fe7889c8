"""
Chat API - one message in, one reply out.

The orchestrator decides the status code:
200 {reply} | 403 {error} (unknown account, lapsed subscription, bad token)
| 500 {error} (anything failing after authentication)
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from copydesk.schemas import ChatRequest, ChatReply, ErrorResponse
from copydesk.services.chat_service import ChatOrchestrator, get_chat_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatReply,
    responses={403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
):
    """Send a chat message and get the assistant's reply."""
    outcome = await orchestrator.handle(request.email, request.token, request.message)
    return JSONResponse(status_code=outcome.status_code, content=outcome.as_body())
