import httpx
import openai
import pytest

from nurseai.rag.embedding_service import EmbeddingService
from nurseai.utils.exceptions import InvalidInput, ProviderUnavailable

from tests.fakes import FakeOpenAIClient, runtime


def make_service(fast_limiter, **client_kwargs):
    client = FakeOpenAIClient(**client_kwargs)
    service = EmbeddingService(
        api_key="sk-test",
        config=runtime(dimensions=3),
        client=client,
        rate_limiter=fast_limiter,
    )
    return service, client.embeddings


class TestBaseUrl:
    def test_openrouter_keys_route_to_openrouter(self):
        assert EmbeddingService.resolve_base_url("sk-or-v1-abc") == EmbeddingService.OPENROUTER_BASE_URL

    def test_other_keys_route_to_openai(self):
        assert EmbeddingService.resolve_base_url("sk-proj-abc") == EmbeddingService.OPENAI_BASE_URL

    def test_explicit_override_wins(self):
        url = EmbeddingService.resolve_base_url("sk-or-v1-abc", "http://localhost:8080/v1/")
        assert url == "http://localhost:8080/v1"


async def test_generate_embedding_uses_runtime_model_and_dimensions(fast_limiter):
    service, embeddings = make_service(fast_limiter)

    vector = await service.generate_embedding("  Blood pressure felt high after lunch  ")

    assert vector == [1.0, 1.0, 1.0]
    call = embeddings.calls[0]
    assert call["model"] == "test-embedding"
    assert call["dimensions"] == 3
    assert call["input"] == "Blood pressure felt high after lunch"


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_empty_text_is_rejected_before_any_call(fast_limiter, text):
    service, embeddings = make_service(fast_limiter)

    with pytest.raises(InvalidInput):
        await service.generate_embedding(text)
    assert embeddings.calls == []


async def test_batch_drops_empty_entries_and_keeps_provider_index_order(fast_limiter):
    service, embeddings = make_service(fast_limiter)

    vectors = await service.generate_embeddings_batch(["first", "", "  ", "second"])

    assert embeddings.calls[0]["input"] == ["first", "second"]
    # The fake answers in reverse order; results follow the index field
    assert vectors == [[1.0] * 3, [2.0] * 3]


async def test_all_empty_batch_makes_no_call(fast_limiter):
    service, embeddings = make_service(fast_limiter)

    assert await service.generate_embeddings_batch(["", " "]) == []
    assert embeddings.calls == []


async def test_provider_error_is_wrapped_without_retry(fast_limiter):
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))
    service, embeddings = make_service(fast_limiter, error=error)

    with pytest.raises(ProviderUnavailable):
        await service.generate_embedding("dizzy this morning")
    assert len(embeddings.calls) == 1


async def test_dimension_mismatch_is_a_provider_error(fast_limiter):
    service, _ = make_service(fast_limiter, vector_size=5)

    with pytest.raises(ProviderUnavailable):
        await service.generate_embedding("short walk")


async def test_missing_api_key_is_a_provider_error(fast_limiter):
    service = EmbeddingService(api_key="", config=runtime(), rate_limiter=fast_limiter)

    with pytest.raises(ProviderUnavailable):
        await service.generate_embedding("anything")


def test_short_text_is_not_tokenized(fast_limiter):
    service, _ = make_service(fast_limiter)

    assert service._truncate_text("x" * 100) == "x" * 100
    assert service._tokenizer is None


class CountingTokenizer:
    """One token per UTF-8 byte, the worst case for byte-level BPE."""

    def __init__(self):
        self.encoded = 0

    def encode(self, text):
        self.encoded += 1
        return list(text.encode("utf-8"))

    def decode(self, tokens):
        return bytes(tokens).decode("utf-8", errors="ignore")


def test_multibyte_text_under_the_character_limit_is_still_tokenized(fast_limiter):
    service, _ = make_service(fast_limiter)
    service._tokenizer = CountingTokenizer()
    text = "\U0001F600" * 8000

    truncated = service._truncate_text(text)

    assert service._tokenizer.encoded == 1
    assert len(truncated.encode("utf-8")) <= EmbeddingService.MAX_TOKENS
    assert truncated == "\U0001F600" * (EmbeddingService.MAX_TOKENS // 4)
