import openai
import pytest

from app.errors import EchoVaultError
from app.services import enhancer
from app.types.contracts import EnhanceRequest
from config import settings


def test_system_prompt_by_type():
    assert enhancer.system_prompt("Summarize").startswith("You are a summarization expert.")
    assert enhancer.system_prompt(None) == enhancer.system_prompt("unknown")
    assert "improve" in enhancer.system_prompt(None).lower()


@pytest.mark.asyncio
async def test_enhance_calls_model(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    seen = []

    async def fake_call(messages):
        seen.append(messages)
        return "Dear friend, goodbye."

    monkeypatch.setattr(enhancer, "_call_openai", fake_call)
    body = await enhancer.enhance(EnhanceRequest(text="bye", enhancement_type="professional"))

    assert body == {"enhancedText": "Dear friend, goodbye."}
    system, user = seen[0]
    assert system["content"].startswith("You are a professional writer.")
    assert user == {"role": "user", "content": "bye"}


@pytest.mark.asyncio
async def test_enhance_wraps_openai_errors(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")

    async def failing(messages):
        raise openai.OpenAIError("quota exceeded")

    monkeypatch.setattr(enhancer, "_call_openai", failing)
    with pytest.raises(EchoVaultError, match="Failed to process text with AI"):
        await enhancer.enhance(EnhanceRequest(text="bye"))


@pytest.mark.asyncio
async def test_enhance_keeps_text_on_empty_completion(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")

    async def empty(messages):
        return ""

    monkeypatch.setattr(enhancer, "_call_openai", empty)
    assert await enhancer.enhance(EnhanceRequest(text="bye")) == {"enhancedText": "bye"}
