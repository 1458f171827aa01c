"""
Chat REST endpoints.

Message log kept next to the open document. Messages live in memory with
the notebook and are not part of a saved document.
"""

from fastapi import APIRouter

from livenote.core.models import ChatCombineRequest, ChatMessage, ChatTextRequest, TextMessage
from livenote.services.notebook import get_notebook

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("", response_model=list[ChatMessage])
async def list_messages():
    return get_notebook().chat.messages


@router.post("/messages", response_model=TextMessage, status_code=201)
async def send_message(body: ChatTextRequest):
    return get_notebook().chat.send_text(body.text)


@router.patch("/messages/{message_id}", response_model=TextMessage)
async def edit_message(message_id: str, body: ChatTextRequest):
    """Replace a text message and flag it as edited."""
    return get_notebook().chat.edit(message_id, body.text)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(message_id: str):
    get_notebook().chat.delete(message_id)


@router.post("/combine", response_model=TextMessage, status_code=201)
async def combine_messages(body: ChatCombineRequest):
    """Merge the selected text messages into one, in timestamp order."""
    return get_notebook().chat.combine_selected(body.message_ids)
