"""
Context assembly for the reply generator.

Kept separate from retrieval so that "what goes into the prompt" can be
tested without "how results are ranked", and vice versa.
"""

from typing import Optional, Sequence

from .base import ContextItem, RetrievalResult


class ContextAssembler:
    """Turns ranked retrieval results into an ordered context list. No I/O."""

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items

    def assemble(self, results: Sequence[RetrievalResult]) -> list[ContextItem]:
        """Keep the incoming order; it is already ranked."""
        items = [
            ContextItem(text=r.record.raw_text, created_at=r.record.created_at)
            for r in results
        ]
        if self.max_items is not None:
            items = items[:self.max_items]
        return items

    @staticmethod
    def format_for_prompt(items: Sequence[ContextItem]) -> str:
        """
        Render context items as a numbered block for an LLM prompt.

        Returns an empty string when there is nothing to add, so callers
        can append the result unconditionally.
        """
        if not items:
            return ""

        lines = ["Relevant memories:"]
        for i, item in enumerate(items, start=1):
            lines.append(f"{i}. {item.text} ({item.created_at.strftime('%B %d, %Y')})")
        return "\n".join(lines)
