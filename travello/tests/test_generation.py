import asyncio

import httpx
import openai
import pytest

from travello.llm.backends import DEFAULT_REPLY, KEYWORD_REPLIES, KeywordReplyBackend, match_bucket
from travello.llm.generation import is_transient
from travello.llm.history import ContextEntry
from travello.tests.conftest import ScriptedBackend
from travello.utils.error_handler import GenerationError, RetryableError, ValidationError


def _status_error(cls, status):
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls(f"HTTP {status}", response=response, body=None)


@pytest.mark.parametrize("message", [None, "", "   ", "\n\t"])
def test_empty_message_never_reaches_backend(make_generation, message):
    backend = ScriptedBackend("unused")
    client = make_generation(backend)

    with pytest.raises(ValidationError):
        asyncio.run(client.generate([], message))
    assert backend.calls == []


def test_oversized_message_is_rejected(make_generation):
    backend = ScriptedBackend("unused")
    client = make_generation(backend, max_message_chars=10)

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(client.generate([], "x" * 11))
    assert "10" in str(exc_info.value)
    assert backend.calls == []


def test_transient_failure_is_retried(make_generation, fake_sleep):
    backend = ScriptedBackend(ConnectionError("reset"), RetryableError("busy"), "Halo!")
    client = make_generation(backend)

    assert asyncio.run(client.generate([], "hai")) == "Halo!"
    assert len(backend.calls) == 3
    assert len(fake_sleep.delays) == 2


def test_non_transient_failure_fails_after_one_call(make_generation, fake_sleep):
    backend = ScriptedBackend(_status_error(openai.AuthenticationError, 401))
    client = make_generation(backend)

    with pytest.raises(GenerationError) as exc_info:
        asyncio.run(client.generate([], "hai"))
    assert len(backend.calls) == 1
    assert fake_sleep.delays == []
    assert exc_info.value.public_message == "Maaf, gagal menghasilkan respons. Silakan coba lagi."


def test_retries_are_bounded(make_generation):
    backend = ScriptedBackend(_status_error(openai.RateLimitError, 429))
    client = make_generation(backend)

    with pytest.raises(GenerationError):
        asyncio.run(client.generate([], "hai"))
    assert len(backend.calls) == 3


def test_slow_backend_times_out_and_is_retried(make_generation):
    class SlowThenFast:
        name = "slow"

        def __init__(self):
            self.calls = 0

        async def generate(self, context, message):
            self.calls += 1
            if self.calls == 1:
                await asyncio.sleep(1)
            return "akhirnya"

    backend = SlowThenFast()
    client = make_generation(backend, timeout_seconds=0.05)

    assert asyncio.run(client.generate([], "hai")) == "akhirnya"
    assert backend.calls == 2


def test_empty_reply_is_a_generation_error(make_generation):
    client = make_generation(ScriptedBackend("   "))
    with pytest.raises(GenerationError):
        asyncio.run(client.generate([], "hai"))


def test_context_is_passed_through(make_generation):
    backend = ScriptedBackend("ok")
    context = [ContextEntry("user", "ke Bali"), ContextEntry("model", "Siap!")]

    asyncio.run(make_generation(backend).generate(context, "berapa lama?"))
    assert backend.calls == [(context, "berapa lama?")]


def test_is_transient_classification():
    assert is_transient(asyncio.TimeoutError())
    assert is_transient(ConnectionError())
    assert is_transient(_status_error(openai.InternalServerError, 503))
    assert is_transient(_status_error(openai.RateLimitError, 429))
    assert not is_transient(_status_error(openai.AuthenticationError, 401))
    assert not is_transient(_status_error(openai.BadRequestError, 400))
    assert not is_transient(ValueError("bad config"))


def test_probe_reports_health(make_generation):
    assert asyncio.run(make_generation(KeywordReplyBackend()).probe()) is True
    broken = make_generation(ScriptedBackend(PermissionError("no key")))
    assert asyncio.run(broken.probe()) is False


def test_keyword_backend_is_deterministic():
    backend = KeywordReplyBackend()
    first = asyncio.run(backend.generate([], "Rekomendasi wisata di Bali"))
    second = asyncio.run(backend.generate([], "Rekomendasi wisata di Bali"))

    assert first == second
    assert first in KEYWORD_REPLIES["wisata"]
    assert "Bali" in first


def test_keyword_buckets():
    assert match_bucket("Hotel murah di Yogyakarta") == "penginapan"
    assert match_bucket("naik kereta ke Bandung") == "transportasi"
    assert match_bucket("Halo") == "sapaan"
    assert match_bucket("apa kabar") is None
    assert asyncio.run(KeywordReplyBackend().generate([], "apa kabar")) == DEFAULT_REPLY
