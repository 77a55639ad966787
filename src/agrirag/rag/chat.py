"""Conversation bookkeeping around the RAG orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from agrirag.db.models import Conversation, Message, MessageRole, QueryRequest
from agrirag.db.repository import Repository
from agrirag.rag.orchestrator import RagOrchestrator

_TITLE_LENGTH = 50


@dataclass
class ChatReply:
    conversation_id: str
    answer: str
    sources: list[str] = field(default_factory=list)
    is_computation: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


def conversation_title(message: str) -> str:
    return message[:_TITLE_LENGTH] + "..."


class ChatService:
    """Store each exchange as a user/assistant message pair in a conversation."""

    def __init__(self, store: Repository, orchestrator: RagOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    def send(self, request: QueryRequest) -> ChatReply:
        """Answer *request*, opening a new conversation when it names none.

        Raises:
            LookupError: ``request.conversation_id`` does not exist.
        """
        conversation_id = self._resolve_conversation(request)
        self._store.add_message(
            Message(conversation_id=conversation_id, role=MessageRole.USER, content=request.message)
        )

        result = self._orchestrator.answer(
            request.message, model=request.model, language=request.language
        )

        self._store.add_message(
            Message(
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT,
                content=result.answer,
                metadata={
                    "sources": list(result.sources),
                    "is_computation": result.is_computation,
                    **result.metadata,
                },
            )
        )
        return ChatReply(
            conversation_id=conversation_id,
            answer=result.answer,
            sources=list(result.sources),
            is_computation=result.is_computation,
            metadata=dict(result.metadata),
        )

    def history(self, conversation_id: str) -> list[Message]:
        """Messages of *conversation_id* in (created_at, seq) order.

        Raises:
            LookupError: Unknown conversation.
        """
        if self._store.get_conversation(conversation_id) is None:
            raise LookupError(f"Unknown conversation: {conversation_id}")
        return self._store.list_messages(conversation_id)

    def _resolve_conversation(self, request: QueryRequest) -> str:
        if request.conversation_id:
            if self._store.get_conversation(request.conversation_id) is None:
                raise LookupError(f"Unknown conversation: {request.conversation_id}")
            return request.conversation_id
        conversation = self._store.create_conversation(
            Conversation(title=conversation_title(request.message))
        )
        return conversation.id
