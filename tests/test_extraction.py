import json

import pytest

from memory_ai.extraction import (
    ExtractionTier,
    MemoryType,
    build_extraction_prompt,
    confidence_tier,
    extract_memory,
    parse_extraction,
    should_extract_memory,
)

HOOKS_CHAT = [
    {"role": "user", "content": "I learned React hooks today"},
    {"role": "assistant", "content": "Great! Hooks simplify state management"},
]
HOOKS_KEY = "user: I learned React hooks today"


def _reply(**fields):
    return json.dumps(fields)


def test_prompt_lists_conversation():
    prompt = build_extraction_prompt(HOOKS_CHAT)
    assert "user: I learned React hooks today\nassistant: Great! Hooks simplify state management" in prompt
    assert '{"confidence": 0.0}' in prompt


def test_confidence_tiers():
    assert confidence_tier(0.9) == ExtractionTier.AUTO_SAVE
    assert confidence_tier(0.8) == ExtractionTier.AUTO_SAVE
    assert confidence_tier(0.79) == ExtractionTier.REVIEW
    assert confidence_tier(0.5) == ExtractionTier.REVIEW
    assert confidence_tier(0.49) == ExtractionTier.DISCARD


@pytest.mark.asyncio
async def test_extract_high_confidence(mock_provider):
    await mock_provider.initialize()
    mock_provider.set_response(HOOKS_KEY, _reply(
        content="React hooks run on every render",
        type="knowledge",
        tags=["react", "hooks"],
        confidence=0.9,
        reasoning="Clear technical fact",
    ))

    memory = await extract_memory(HOOKS_CHAT, mock_provider)

    assert memory.content == "React hooks run on every render"
    assert memory.type == MemoryType.KNOWLEDGE
    assert memory.tags == ["react", "hooks"]
    assert memory.confidence == 0.9
    assert memory.reasoning == "Clear technical fact"
    assert memory.tier == ExtractionTier.AUTO_SAVE
    assert mock_provider.stats.chat_calls == 1


@pytest.mark.asyncio
async def test_extract_review_tier_from_fenced_reply(mock_provider):
    await mock_provider.initialize()
    mock_provider.set_response(
        HOOKS_KEY,
        "Sure! Here's the memory:\n\n```json\n"
        + _reply(content="User is learning React hooks", type="experience", tags=["react"], confidence=0.6)
        + "\n```\n\nLet me know if you'd like to adjust anything!",
    )

    memory = await extract_memory(HOOKS_CHAT, mock_provider)

    assert memory.type == MemoryType.EXPERIENCE
    assert memory.tier == ExtractionTier.REVIEW
    assert memory.to_dict()["tier"] == "review"


@pytest.mark.asyncio
async def test_low_confidence_discarded(mock_provider):
    await mock_provider.initialize()
    mock_provider.set_response(HOOKS_KEY, _reply(confidence=0.3))
    assert await extract_memory(HOOKS_CHAT, mock_provider) is None


@pytest.mark.asyncio
async def test_malformed_reply_gives_none(mock_provider):
    await mock_provider.initialize()
    mock_provider.set_response(HOOKS_KEY, "Not JSON at all, just random text")
    assert await extract_memory(HOOKS_CHAT, mock_provider) is None


@pytest.mark.asyncio
async def test_uninitialized_provider_gives_none(mock_provider):
    assert await extract_memory(HOOKS_CHAT, mock_provider) is None


@pytest.mark.asyncio
async def test_chat_failure_gives_none(mock_provider):
    await mock_provider.initialize()

    async def boom(message, context):
        raise RuntimeError("model crashed")

    mock_provider._chat = boom
    assert await extract_memory(HOOKS_CHAT, mock_provider) is None


@pytest.mark.parametrize(
    "reply",
    [
        _reply(content="x", type="knowledge", tags=["a"], confidence="0.9"),
        _reply(content="x", type="knowledge", tags=["a"], confidence=True),
        _reply(type="knowledge", tags=["a"], confidence=0.9),
        _reply(content="   ", type="knowledge", tags=["a"], confidence=0.9),
        _reply(content="x", tags=["a"], confidence=0.9),
        _reply(content="x", type="knowledge", tags="a", confidence=0.9),
        "[1, 2, 3]",
        "",
    ],
)
def test_parse_rejects_incomplete(reply):
    assert parse_extraction(reply) is None


def test_parse_defaults_unknown_type_and_cleans_fields():
    memory = parse_extraction(_reply(
        content="  Content with spaces  ",
        type="invalid-type",
        tags=["  TAG1  ", "Tag2  ", "  "],
        confidence=1.7,
    ))

    assert memory.content == "Content with spaces"
    assert memory.type == MemoryType.KNOWLEDGE
    assert memory.tags == ["tag1", "tag2"]
    assert memory.confidence == 1.0
    assert memory.reasoning is None


def test_should_extract_substantive_conversation():
    assert should_extract_memory([
        {"role": "user", "content": "Tell me about TypeScript generics and how they work"},
        {"role": "assistant", "content": "Generics allow type parameters to create reusable code"},
    ])


@pytest.mark.parametrize(
    "messages",
    [
        [{"role": "user", "content": "Hello there, I have a long story to tell you about my week"}],
        [
            {"role": "user", "content": "Question one about React hooks"},
            {"role": "assistant", "content": "Answer about hooks running on render"},
            {"role": "user", "content": "Follow-up question about useEffect"},
        ],
        [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}],
        [
            {"role": "user", "content": "What is React?"},
            {"role": "assistant", "content": "React is a JavaScript library for building user interfaces."},
        ],
    ],
)
def test_should_not_extract(messages):
    assert not should_extract_memory(messages)
