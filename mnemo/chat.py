"""
Companion chat: remember what the user says, reply with their memories in mind.

Each turn:
1. Embed the message once
2. Recall memories related to it (before storing it, so the message
   cannot match itself)
3. Remember the message under the same embedding
4. Ask the LLM for a reply with the recalled memories as context
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import IndexWriteFailed
from .llm import LLMProvider
from .memory import ContextAssembler, ContextItem, MemoryManager, MemoryRecord
from .memory.correlation import require_text

logger = logging.getLogger("mnemo.chat")

COMPANION_SYSTEM_PROMPT = """You are a caring companion helping someone who sometimes struggles to remember.
Your role is to:
- Help them remember important people, events, and moments
- Speak kindly and patiently
- Never mention that they have memory issues
- Be conversational and warm
- Only refer to a memory when it genuinely relates to what they said"""

FALLBACK_REPLY = "I'm sorry, I couldn't think of a reply just now."


@dataclass
class ChatTurn:
    """Result of one message exchange."""
    record: MemoryRecord
    reply: str
    memories_used: list[ContextItem] = field(default_factory=list)
    warning: Optional[IndexWriteFailed] = None


class CompanionChat:
    """Memory-grounded conversation for one deployment."""

    def __init__(
        self,
        memory: MemoryManager,
        llm: LLMProvider,
        context_limit: int = 5,
    ):
        self.memory = memory
        self.llm = llm
        self.context_limit = context_limit
        self.assembler = ContextAssembler(max_items=context_limit)

    def build_system_prompt(self, memories: list[ContextItem]) -> str:
        context = self.assembler.format_for_prompt(memories)
        if not context:
            return COMPANION_SYSTEM_PROMPT
        return f"{COMPANION_SYSTEM_PROMPT}\n\n{context}"

    async def send_message(self, owner_id: str, message: str) -> ChatTurn:
        """
        Handle one message from the user.

        Raises:
            ValidationError, EmbeddingUnavailable, IndexQueryFailed,
            RecordStoreError: propagated from the memory engine
        """
        require_text(owner_id, "owner_id")
        vector = await self.memory.embed(message)
        results = await self.memory.recall(owner_id, message, limit=self.context_limit, vector=vector)
        memories = self.assembler.assemble(results)

        stored = await self.memory.remember(owner_id, message, vector=vector)
        if stored.degraded:
            logger.warning(f"Message stored without index entry: {stored.warning}")

        response = await self.llm.generate(
            prompt=message,
            system_prompt=self.build_system_prompt(memories),
        )
        reply = response.content.strip() or FALLBACK_REPLY
        logger.info(f"Replied using {len(memories)} memories ({response.token_count} tokens)")

        return ChatTurn(
            record=stored.record,
            reply=reply,
            memories_used=memories,
            warning=stored.warning,
        )
