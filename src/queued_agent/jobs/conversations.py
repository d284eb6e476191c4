"""Conversation history shared between jobs with the same conversation id."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict
from typing import Protocol

import redis

from queued_agent.redis_client import translate_redis_errors
from queued_agent.types import ChatMessage


class ConversationStore(Protocol):
    def load(self, conversation_id: str) -> list[ChatMessage]:
        """Return stored messages, or an empty list for a new conversation."""

    def save(self, conversation_id: str, messages: list[ChatMessage]) -> None:
        """Replace the stored messages."""


class InMemoryConversationStore:
    def __init__(self) -> None:
        self._conversations: dict[str, list[ChatMessage]] = {}
        self._lock = threading.Lock()

    def load(self, conversation_id: str) -> list[ChatMessage]:
        with self._lock:
            return list(self._conversations.get(conversation_id, []))

    def save(self, conversation_id: str, messages: list[ChatMessage]) -> None:
        with self._lock:
            self._conversations[conversation_id] = list(messages)


class RedisConversationStore:
    def __init__(self, client: redis.Redis, *, ttl_seconds: int = 604800) -> None:
        self._redis = client
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key(conversation_id: str) -> str:
        return f"conversation:{conversation_id}"

    def load(self, conversation_id: str) -> list[ChatMessage]:
        with translate_redis_errors("conversation read"):
            raw = self._redis.get(self.key(conversation_id))
        if raw is None:
            return []
        return [ChatMessage(**item) for item in json.loads(raw)]

    def save(self, conversation_id: str, messages: list[ChatMessage]) -> None:
        payload = json.dumps([asdict(message) for message in messages], ensure_ascii=False)
        with translate_redis_errors("conversation write"):
            self._redis.set(self.key(conversation_id), payload, ex=self._ttl_seconds)
