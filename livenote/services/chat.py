"""In-memory chat-style message log kept next to a document.

Holds text, image and audio messages in arrival order. Text messages can be
edited, and several of them can be combined into one.
"""

import logging

from livenote.core.exceptions import ChatMessageNotFoundError, InvalidNoteError
from livenote.core.models import AudioMessage, ChatMessage, ImageMessage, TextMessage

logger = logging.getLogger(__name__)

COMBINE_SEPARATOR = "\n\n"


class ChatLog:
    """Ordered list of chat messages with edit, delete and combine."""

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = list(messages or [])

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def get(self, message_id: str) -> ChatMessage:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise ChatMessageNotFoundError(message_id)

    def send_text(self, text: str, is_user_typed: bool = True) -> TextMessage:
        if not text or not text.strip():
            raise InvalidNoteError("Message text must not be empty")
        message = TextMessage(text=text, is_user_typed=is_user_typed)
        self._messages.append(message)
        return message

    def add_image(self, uri: str) -> ImageMessage:
        message = ImageMessage(uri=uri)
        self._messages.append(message)
        return message

    def add_audio(self, uri: str, duration_seconds: float = 0.0) -> AudioMessage:
        message = AudioMessage(uri=uri, duration_seconds=duration_seconds)
        self._messages.append(message)
        return message

    def edit(self, message_id: str, text: str) -> TextMessage:
        """Replace the text of a text message and flag it as edited."""
        message = self.get(message_id)
        if not isinstance(message, TextMessage):
            raise InvalidNoteError("Only text messages can be edited")
        edited = message.model_copy(update={"text": text, "edited": True})
        self._messages = [edited if m.id == message_id else m for m in self._messages]
        return edited

    def delete(self, message_id: str) -> None:
        self.get(message_id)
        self._messages = [m for m in self._messages if m.id != message_id]

    def combine_selected(self, message_ids: list[str]) -> TextMessage:
        """Merge the selected text messages into one new message.

        Texts are joined in timestamp order. Every selected message is
        removed and the combined message is appended at the end.

        Raises:
            InvalidNoteError: If fewer than two text messages are selected.
        """
        selected = set(message_ids)
        texts = sorted(
            (m for m in self._messages if m.id in selected and isinstance(m, TextMessage)),
            key=lambda m: m.timestamp,
        )
        if len(texts) < 2:
            raise InvalidNoteError("Select at least two text messages to combine")

        combined = TextMessage(
            text=COMBINE_SEPARATOR.join(m.text for m in texts),
            is_combined=True,
            is_user_typed=False,
        )
        self._messages = [m for m in self._messages if m.id not in selected] + [combined]
        logger.debug("Combined %s messages into %s", len(texts), combined.id)
        return combined
