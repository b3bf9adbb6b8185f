import pytest

from memory_ai.embedding.provider import make_model_loader
from memory_ai.embedding.stub_model import StubEmbeddingModel
from memory_ai.errors import InitializationError


def test_stub_loader():
    model = make_model_loader("stub", "ignored", 16)()
    assert isinstance(model, StubEmbeddingModel)
    assert model.dimension == 16
    assert model.model_name == "stub-16"


def test_unknown_backend():
    with pytest.raises(InitializationError):
        make_model_loader("tfjs", "x", 384)


def test_stub_model_deterministic_unit_vectors(stub_model):
    a = stub_model.embed("I love coffee")
    assert a == stub_model.embed("I love coffee")
    assert a != stub_model.embed("I hate coffee")
    assert abs(sum(x * x for x in a) - 1.0) < 1e-9
    assert stub_model.embed_batch(["x", "y"]) == [stub_model.embed("x"), stub_model.embed("y")]


@pytest.mark.asyncio
async def test_default_engine_from_environment():
    from memory_ai.embedding.provider import (
        generate_batch_embeddings,
        generate_embedding,
        get_info,
        is_ready,
    )

    vec = await generate_embedding("I love coffee")
    assert len(vec) == 384
    assert is_ready()
    assert get_info()["model_name"] == "stub-384"

    batch = await generate_batch_embeddings(["I love coffee", "I like hiking"])
    assert batch[0] == vec
