"""
Entity extraction for memories.

Annotates each utterance with the people it names and the everyday
activities it mentions ("Sarah came by for lunch" -> people={Sarah},
activities={lunch}). Three strategies:

- SpacyEntityExtractor: spaCy NER for PERSON entities plus an activity vocabulary
- LLMEntityExtractor: asks the configured LLM for JSON, falls back to regex
- RegexEntityExtractor: capitalized names plus the activity vocabulary

SETUP REQUIRED for spaCy:
    python -m spacy download en_core_web_sm
"""

import json
import logging
import re
from typing import Optional

from .memory.base import Entities, EntityExtractor

logger = logging.getLogger("mnemo.entities")

# Everyday activities worth remembering
ACTIVITY_KEYWORDS = {
    "lunch",
    "dinner",
    "breakfast",
    "visit",
    "walk",
    "talk",
    "meeting",
    "shopping",
    "church",
    "doctor",
    "garden",
    "nap",
    "call",
    "game",
}

# Capitalized words that are not names
NON_NAME_WORDS = {
    "I", "The", "A", "An", "We", "She", "He", "They", "It", "My", "Our",
    "Today", "Yesterday", "Tomorrow", "This", "That",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
}

NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+(?:\s[A-Z][a-z]+)?\b")

ENTITY_PROMPT = """Extract people's names and activities from the following text. Return ONLY a JSON object with two arrays: "people" and "activities".

Text: "{text}"

Example response format:
{{
  "people": ["Sarah", "John"],
  "activities": ["lunch", "walking"]
}}

JSON response:"""


def find_activities(text: str) -> set[str]:
    """Activity keywords mentioned anywhere in the text."""
    lowered = text.lower()
    return {a for a in ACTIVITY_KEYWORDS if re.search(rf"\b{a}", lowered)}


class RegexEntityExtractor(EntityExtractor):
    """Cheap fallback: capitalized words are treated as names."""

    async def extract(self, text: str) -> Entities:
        people = set()
        for match in NAME_PATTERN.findall(text):
            words = match.split()
            # Drop a sentence-initial non-name ("Today Sarah" -> "Sarah")
            while words and words[0] in NON_NAME_WORDS:
                words = words[1:]
            if words:
                people.add(" ".join(words))
        return Entities(people=frozenset(people), activities=frozenset(find_activities(text)))


class SpacyEntityExtractor(EntityExtractor):
    """Uses spaCy NER for people and lemma matching for activities."""

    def __init__(self, model_name: str = "en_core_web_sm"):
        """
        Args:
            model_name: Name of the spaCy model to load.
                       Run `python -m spacy download en_core_web_sm` first.
        """
        self.model_name = model_name
        self._nlp = None
        logger.info(f"SpacyEntityExtractor initialized with model: {model_name}")

    def _get_nlp(self):
        """Lazy load the spaCy model."""
        if self._nlp is None:
            import spacy

            logger.info(f"Loading spaCy model: {self.model_name}")
            try:
                self._nlp = spacy.load(self.model_name)
            except OSError as e:
                raise RuntimeError(
                    f"spaCy model '{self.model_name}' not found. "
                    f"Please run: python -m spacy download {self.model_name}"
                ) from e
        return self._nlp

    async def extract(self, text: str) -> Entities:
        doc = self._get_nlp()(text)

        people = {ent.text.strip() for ent in doc.ents if ent.label_ == "PERSON"}
        activities = find_activities(text)
        # "walked", "visiting" -> walk, visit
        activities.update(tok.lemma_.lower() for tok in doc if tok.lemma_.lower() in ACTIVITY_KEYWORDS)

        return Entities(
            people=frozenset(p for p in people if p),
            activities=frozenset(activities),
        )


class LLMEntityExtractor(EntityExtractor):
    """Asks an LLM for entities; any failure falls back to the regex extractor."""

    def __init__(self, llm, fallback: Optional[EntityExtractor] = None):
        self.llm = llm
        self.fallback = fallback or RegexEntityExtractor()

    async def extract(self, text: str) -> Entities:
        try:
            response = await self.llm.generate(
                prompt=ENTITY_PROMPT.format(text=text),
                temperature=0.0,
                max_tokens=200,
            )
            match = re.search(r"\{[\s\S]*\}", response.content or "")
            if not match:
                raise ValueError("no JSON object in response")
            data = json.loads(match.group(0))
            return Entities.from_lists(
                people=[str(p).strip() for p in data.get("people") or []],
                activities=[str(a).strip().lower() for a in data.get("activities") or []],
            )
        except Exception as e:
            logger.warning(f"LLM entity extraction failed, using regex fallback: {e}")
            return await self.fallback.extract(text)


def create_entity_extractor(
    extractor: str = "spacy",
    spacy_model: str = "en_core_web_sm",
    llm=None,
) -> Optional[EntityExtractor]:
    """
    Factory function to create the configured entity extractor.

    Returns:
        An EntityExtractor, or None when extraction is disabled
    """
    if extractor == "none":
        return None
    elif extractor == "spacy":
        return SpacyEntityExtractor(model_name=spacy_model)
    elif extractor == "llm":
        if llm is None:
            raise ValueError("An LLM provider is required for the llm entity extractor")
        return LLMEntityExtractor(llm)
    elif extractor == "regex":
        return RegexEntityExtractor()
    else:
        raise ValueError(f"Unknown entity extractor: {extractor}")
