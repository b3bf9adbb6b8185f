"""
Contradiction and duplicate detection over stored memories.

Contradiction checks run in two stages: a cosine-similarity prefilter picks
the memories close enough to be about the same thing, then the language
model judges each surviving pair. Memories below the prefilter threshold
never reach the model.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Optional, Sequence

from memory_ai.config import CONTRADICTION_THRESHOLD, DUPLICATE_THRESHOLD
from memory_ai.providers.base import BaseProvider
from memory_ai.similarity import Candidate, SimilarityMatch, find_similar

logger = logging.getLogger(__name__)

NO_EXPLANATION = "No explanation provided"
NOT_ANALYZED = "Could not analyze for contradiction"

CONTRADICTION_PROMPT = """Analyze if these two statements contradict each other:

Statement 1: "{text1}"
Statement 2: "{text2}"

Respond in JSON format:
{{
  "contradicts": true/false,
  "confidence": 0-100,
  "explanation": "brief explanation of why they do or don't contradict"
}}

Consider:
- Direct contradictions (X is true vs X is false)
- Contextual contradictions (may be true in different contexts)
- Complementary statements (both can be true)

Examples:
- "I love coffee" vs "I hate coffee" = CONTRADICTS (confidence: 95)
- "I drink coffee in the morning" vs "I avoid caffeine at night" = NO CONTRADICTION (confidence: 90)
- "My favorite color is blue" vs "My favorite color is red" = CONTRADICTS (confidence: 100)
- "I work at Google" vs "I work in tech" = NO CONTRADICTION (confidence: 95)

Only mark as contradiction if the statements cannot both be true at the same time."""


@dataclass(frozen=True)
class Judgment:
    contradicts: bool
    confidence: int
    explanation: str


@dataclass(frozen=True)
class ContradictionVerdict:
    memory1_id: str
    memory2_id: str
    contradicts: bool
    confidence: int
    explanation: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MemoryPair:
    id1: str
    content1: str
    id2: str
    content2: str


NO_JUDGMENT = Judgment(contradicts=False, confidence=0, explanation=NOT_ANALYZED)


def build_prompt(text1: str, text2: str) -> str:
    return CONTRADICTION_PROMPT.format(text1=text1, text2=text2)


def extract_json_object(text: str) -> Optional[dict]:
    """
    Return the first JSON object embedded in ``text``.

    Models often wrap the object in prose or ``` fences; every ``{`` is
    tried as a start position until one decodes to a dict.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except ValueError:
            pass
        else:
            if isinstance(obj, dict):
                return obj
        start = text.find("{", start + 1)
    return None


def clamp_confidence(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if math.isnan(value):
        return 0
    return int(round(min(100.0, max(0.0, float(value)))))


def parse_judgment(response: str) -> Judgment:
    data = extract_json_object(response or "")
    if data is None:
        logger.debug("No JSON object in contradiction response: %r", response[:200] if response else response)
        return NO_JUDGMENT

    explanation = data.get("explanation")
    if not isinstance(explanation, str) or not explanation:
        explanation = NO_EXPLANATION

    return Judgment(
        # anything but a literal true (missing, "yes", 1) is no contradiction
        contradicts=data.get("contradicts") is True,
        confidence=clamp_confidence(data.get("confidence")),
        explanation=explanation,
    )


async def analyze_contradiction(text1: str, text2: str, provider: BaseProvider) -> Judgment:
    """Ask the model whether two statements conflict; never raises."""
    try:
        response = await provider.chat(build_prompt(text1, text2))
    except Exception as e:
        logger.warning("Contradiction analysis failed: %s", e, extra={"operation": "contradiction"})
        return NO_JUDGMENT
    return parse_judgment(response)


def get_contradiction_candidates(
    embedding: Sequence[float],
    existing: Iterable[Candidate],
    *,
    threshold: float = CONTRADICTION_THRESHOLD,
    exclude_ids: Iterable[str] = (),
) -> List[SimilarityMatch]:
    return find_similar(embedding, existing, threshold=threshold, exclude_ids=exclude_ids)


async def detect_contradictions(
    new_id: str,
    new_content: str,
    new_embedding: Sequence[float],
    existing: Iterable[Candidate],
    provider: BaseProvider,
    *,
    threshold: float = CONTRADICTION_THRESHOLD,
) -> List[ContradictionVerdict]:
    candidates = get_contradiction_candidates(
        new_embedding, existing, threshold=threshold, exclude_ids=[new_id]
    )
    if not candidates:
        return []

    verdicts: List[ContradictionVerdict] = []
    for match in candidates:
        judgment = await analyze_contradiction(new_content, match.content, provider)
        if judgment.contradicts:
            verdicts.append(
                ContradictionVerdict(
                    memory1_id=new_id,
                    memory2_id=match.id,
                    contradicts=True,
                    confidence=judgment.confidence,
                    explanation=judgment.explanation,
                )
            )

    logger.info(
        "Checked %d candidates for %s, %d contradictions",
        len(candidates),
        new_id,
        len(verdicts),
        extra={"operation": "contradiction"},
    )
    return verdicts


async def batch_analyze_contradictions(
    pairs: Iterable[MemoryPair],
    provider: BaseProvider,
) -> List[ContradictionVerdict]:
    """Judge every pair independently; one verdict per pair, in order."""
    out: List[ContradictionVerdict] = []
    for pair in pairs:
        judgment = await analyze_contradiction(pair.content1, pair.content2, provider)
        out.append(
            ContradictionVerdict(
                memory1_id=pair.id1,
                memory2_id=pair.id2,
                contradicts=judgment.contradicts,
                confidence=judgment.confidence,
                explanation=judgment.explanation,
            )
        )
    return out


def detect_duplicates(
    embedding: Sequence[float],
    candidates: Iterable[Candidate],
    threshold: float = DUPLICATE_THRESHOLD,
    *,
    limit: int = 10,
) -> List[SimilarityMatch]:
    return find_similar(embedding, candidates, threshold=threshold, limit=limit)


def classify_similarity(similarity: float) -> str:
    """
    Label a similarity score against the configured thresholds.

    Anything ``detect_duplicates`` returns at its default threshold is a
    "duplicate"; scores that would reach the contradiction check are
    "related".
    """
    if similarity >= DUPLICATE_THRESHOLD:
        return "duplicate"
    if similarity >= CONTRADICTION_THRESHOLD:
        return "related"
    return "distinct"
