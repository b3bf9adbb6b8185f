"""
Memory extraction from conversations.

The selected provider reads the recent messages and proposes one memory
worth keeping. What happens next depends on the model's confidence:

- ``auto_save`` (>= EXTRACTION_AUTO_SAVE_CONFIDENCE): save without asking;
- ``review`` (>= EXTRACTION_REVIEW_CONFIDENCE): ask the user to confirm;
- anything lower is discarded and ``extract_memory`` returns ``None``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from memory_ai.config import EXTRACTION_AUTO_SAVE_CONFIDENCE, EXTRACTION_REVIEW_CONFIDENCE
from memory_ai.contradiction import extract_json_object
from memory_ai.providers.base import BaseProvider

logger = logging.getLogger(__name__)

MIN_CONVERSATION_CHARS = 50
SHORT_QUESTION_WORDS = 10

Message = Mapping[str, str]

EXTRACTION_PROMPT = """
Analyze this conversation and extract a memory that should be saved.

CONVERSATION:
{conversation}

IMPORTANT - DO NOT extract memories from:
- Questions (e.g., "what are my preferences?", "how do I...?")
- Greetings or small talk
- Requests for information
- Meta-conversation about the system itself

ONLY extract memories from:
- User stating facts about themselves (preferences, experiences, knowledge)
- User sharing personal insights or realizations
- User describing their methods or approaches

Extract a memory following these rules:

1. CONTENT: ONE SHORT SENTENCE summarizing the key fact/insight
   - Maximum 15 words
   - NO explanations, NO context, NO details
   - Examples:
     * "User prefers working in the morning"
     * "React hooks run on every render"

2. TYPE: Classify as one of:
   - "knowledge": Facts, concepts, how things work
   - "experience": Personal experiences, events, observations
   - "method": Approaches, strategies, workflows

3. TAGS: 2-3 relevant keywords (lowercase, hyphenated)

4. CONFIDENCE: Your confidence this is worth remembering (0.0-1.0)

5. REASONING: Brief explanation (max 10 words)

Respond ONLY with valid JSON:
{{
  "content": "...",
  "type": "knowledge|experience|method",
  "tags": ["tag1", "tag2"],
  "confidence": 0.85,
  "reasoning": "..."
}}

If nothing memorable was discussed (e.g., just a question or small talk), respond with:
{{"confidence": 0.0}}
"""


class MemoryType(str, Enum):
    KNOWLEDGE = "knowledge"
    EXPERIENCE = "experience"
    METHOD = "method"


class ExtractionTier(str, Enum):
    AUTO_SAVE = "auto_save"
    REVIEW = "review"
    DISCARD = "discard"


def confidence_tier(confidence: float) -> ExtractionTier:
    if confidence >= EXTRACTION_AUTO_SAVE_CONFIDENCE:
        return ExtractionTier.AUTO_SAVE
    if confidence >= EXTRACTION_REVIEW_CONFIDENCE:
        return ExtractionTier.REVIEW
    return ExtractionTier.DISCARD


@dataclass(frozen=True)
class ExtractedMemory:
    content: str
    type: MemoryType
    tags: List[str] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: Optional[str] = None

    @property
    def tier(self) -> ExtractionTier:
        return confidence_tier(self.confidence)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        d["tier"] = self.tier.value
        return d


def build_extraction_prompt(messages: Sequence[Message]) -> str:
    conversation = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
    return EXTRACTION_PROMPT.format(conversation=conversation)


def _confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return min(1.0, max(0.0, float(value)))


def parse_extraction(response: str) -> Optional[ExtractedMemory]:
    """
    Turn a model reply into an ``ExtractedMemory``.

    Returns ``None`` when the reply has no usable JSON object, when the
    confidence falls in the discard tier, or when content, type or tags are
    missing. An unknown type falls back to ``knowledge``.
    """
    data = extract_json_object(response or "")
    if data is None:
        return None

    confidence = _confidence(data.get("confidence"))
    if confidence is None or confidence_tier(confidence) == ExtractionTier.DISCARD:
        return None

    content = data.get("content")
    tags = data.get("tags")
    if not isinstance(content, str) or not content.strip() or not data.get("type") or not isinstance(tags, list):
        return None

    try:
        memory_type = MemoryType(data["type"])
    except ValueError:
        memory_type = MemoryType.KNOWLEDGE

    reasoning = data.get("reasoning")
    return ExtractedMemory(
        content=content.strip(),
        type=memory_type,
        tags=[str(t).strip().lower() for t in tags if str(t).strip()],
        confidence=confidence,
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )


async def extract_memory(messages: Sequence[Message], provider: BaseProvider) -> Optional[ExtractedMemory]:
    """Ask the provider for one memory worth keeping; never raises."""
    if not messages:
        return None
    try:
        response = await provider.chat(build_extraction_prompt(messages))
    except Exception as e:
        logger.warning("Memory extraction failed: %s", e, extra={"operation": "extraction"})
        return None

    extracted = parse_extraction(response)
    if extracted is None:
        logger.debug("Nothing extracted from %d messages", len(messages), extra={"operation": "extraction"})
    return extracted


def should_extract_memory(messages: Sequence[Message]) -> bool:
    """
    Cheap gate before spending a model call on extraction.

    Needs at least two messages ending with the assistant, more than
    MIN_CONVERSATION_CHARS of text, and a last user message that is not a
    short question.
    """
    if len(messages) < 2 or messages[-1]["role"] != "assistant":
        return False

    last_user = next((m for m in reversed(messages) if m["role"] == "user"), None)
    if last_user is not None:
        content = last_user["content"].strip()
        if content.endswith("?") and len(content.split()) < SHORT_QUESTION_WORDS:
            return False

    return len(" ".join(m["content"] for m in messages).strip()) > MIN_CONVERSATION_CHARS
