"""
Speech-to-text for recorded video messages.

The client uploads the audio track of a recording as base64 webm; Whisper
returns the transcription shown next to the video.
"""

from __future__ import annotations

import base64
import binascii
import logging

import openai
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
)

from app.errors import EchoVaultError, ValidationError
from app.services.enhancer import RETRY_ERRORS, _get_client
from app.types.contracts import TranscribeRequest
from config import settings

_LOGGER = logging.getLogger(__name__)

WHISPER_MODEL = "whisper-1"


@retry(
    wait=wait_random_exponential(multiplier=1, max=30),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(RETRY_ERRORS),
    reraise=True,
)
async def _call_whisper(audio: bytes) -> str:
    response = await _get_client().audio.transcriptions.create(
        model=WHISPER_MODEL,
        file=("recording.webm", audio, "audio/webm"),
        language="en",
        timeout=settings.OPENAI_TIMEOUT,
    )
    return response.text


def decode_video(video_base64: str) -> bytes:
    try:
        return base64.b64decode(video_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Invalid video data") from exc


async def transcribe(request: TranscribeRequest) -> dict:
    """Entry point of the transcribe-video function: ``{"transcription": ..., "success": true}``."""
    if not request.video_base64:
        raise ValidationError("No video data provided")
    audio = decode_video(request.video_base64)
    _LOGGER.info("Received %d bytes of video data for transcription", len(audio))

    if not settings.OPENAI_API_KEY:
        _LOGGER.info("[TRANSCRIBE] DEV mode: returning empty transcription")
        return {"transcription": "", "success": True}
    try:
        text = await _call_whisper(audio)
    except openai.OpenAIError as exc:
        _LOGGER.error("OpenAI API Error: %s", exc)
        raise EchoVaultError("Failed to transcribe video") from exc
    _LOGGER.info("Transcription successful")
    return {"transcription": text, "success": True}
