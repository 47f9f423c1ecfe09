import logging
import asyncio
from typing import Optional
from google import genai
from google.genai import errors, types
from api.config import Settings
from lib.error_handler import RemoteServiceError

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_MIME_TYPE = 'audio/ogg'

# Audio subtypes accepted for uploads and recognized on inbound webhooks
AUDIO_MIME_TYPES = frozenset({
    'audio/mpeg',
    'audio/mp3',
    'audio/wav',
    'audio/ogg',
    'audio/webm',
    'audio/mp4',
    'audio/aac',
    'audio/flac',
    'audio/x-wav',
    'audio/vnd.wave',
})

def is_audio_mime_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    # Twilio sends e.g. "audio/ogg; codecs=opus"
    return content_type.split(';')[0].strip().lower() in AUDIO_MIME_TYPES

def create_genai_client(settings: Settings) -> genai.Client:
    return genai.Client(
        vertexai=True,
        project=settings.google_cloud_project,
        location=settings.vertex_location
    )

class AudioService:
    def __init__(self, genai_client, model: str, prompt: str):
        self.client = genai_client
        self.model = model
        self.prompt = prompt
        logger.info(f"Audio service initialized with model: {model}")

    @classmethod
    def from_settings(cls, settings: Settings, genai_client=None) -> "AudioService":
        return cls(
            genai_client=genai_client or create_genai_client(settings),
            model=settings.vertex_model,
            prompt=settings.transcription_prompt
        )

    async def transcribe_audio(self, audio: bytes, mime_type: str = DEFAULT_AUDIO_MIME_TYPE) -> str:
        """Transcribe audio bytes with a single generative-content request"""
        logger.info(f"Transcribing {len(audio)} bytes of {mime_type} with {self.model}")
        contents = [types.Content(
            role='user',
            parts=[
                types.Part.from_bytes(data=audio, mime_type=mime_type.split(';')[0].strip()),
                types.Part.from_text(text=self.prompt),
            ]
        )]

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.models.generate_content(model=self.model, contents=contents)
            )
        except errors.APIError as e:
            logger.error(f"Vertex AI transcription failed: {str(e)}")
            raise RemoteServiceError(f"Transcription failed: {e.message}")

        transcript = self._extract_text(response)
        if transcript is None:
            raise RemoteServiceError("Transcription returned no usable candidate")

        logger.info(f"Transcription complete: {transcript[:50]}...")
        return transcript

    def _extract_text(self, response) -> Optional[str]:
        candidates = getattr(response, 'candidates', None)
        if not candidates:
            return None
        content = candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text
