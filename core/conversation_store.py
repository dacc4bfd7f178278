import asyncio
from typing import Dict, Optional

from schemas.conversation import ConversationContext


class ConversationStore:
    """Conversation contexts by id, shared between requests behind a lock"""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._conversations: Dict[str, ConversationContext] = {}

    async def store(self, context: ConversationContext):
        snapshot = context.model_copy(deep=True)
        async with self._lock:
            self._conversations[context.id] = snapshot

    async def get(self, conversation_id: str) -> Optional[ConversationContext]:
        async with self._lock:
            context = self._conversations.get(conversation_id)
        return context.model_copy(deep=True) if context else None

    async def count(self) -> int:
        async with self._lock:
            return len(self._conversations)
