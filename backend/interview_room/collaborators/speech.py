import logging

from core.config import TRANSCRIBE_MODEL, TTS_MODEL, TTS_VOICE
from interview_room.collaborators.llm import call_bounded, get_client
from interview_room.errors import TransientCollaboratorError

logger = logging.getLogger("interview_room.collaborators.speech")

SUPPORTED_LANGUAGES = {"en", "es", "ar", "hi", "fr"}


class WhisperTranscriber:
    def __init__(self, model: str = TRANSCRIBE_MODEL, filename: str = "answer.webm"):
        self.model = model
        self.filename = filename

    async def transcribe(self, audio: bytes, language_hint: str | None = None) -> str:
        if not audio:
            return ""

        kwargs = {"model": self.model, "file": (self.filename, bytes(audio))}
        language = str(language_hint or "").strip().lower()
        if language in SUPPORTED_LANGUAGES:
            kwargs["language"] = language

        async def _create():
            return await get_client().audio.transcriptions.create(**kwargs)

        result = await call_bounded("transcriber", _create)
        text = str(getattr(result, "text", "") or "").strip()
        logger.info("transcription done | chars=%s", len(text))
        return text


class OpenAISpeechSynthesizer:
    def __init__(self, model: str = TTS_MODEL, voice: str = TTS_VOICE, speed: float = 1.0, audio_format: str = "mp3"):
        self.model = model
        self.voice = voice
        self.speed = speed
        self.audio_format = audio_format

    async def speak(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        if not str(text or "").strip():
            raise TransientCollaboratorError("synthesizer", "cannot synthesize empty text")

        async def _create():
            return await get_client().audio.speech.create(
                model=self.model,
                voice=voice_id or self.voice,
                input=text,
                speed=self.speed,
                response_format=self.audio_format,
            )

        response = await call_bounded("synthesizer", _create)
        audio = bytes(response.content or b"")
        logger.info("speech generated | language=%s bytes=%s", language, len(audio))
        return audio
