import logging
import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import ValidationError as PydanticValidationError
from google.api_core.exceptions import GoogleAPIError
from google.cloud import firestore, storage, texttospeech
from api.config import Settings
from api.models import AudioConfig, TextToAudioResult, VoiceConfig
from lib import bucket as bucket_helpers
from lib.error_handler import RemoteServiceError, ValidationError

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = 'audio/mpeg'
SOURCE = 'text-to-speech-service'

VOICE_PRESETS: Dict[str, VoiceConfig] = {
    'female-us': VoiceConfig(language_code='en-US', name='en-US-Wavenet-F', ssml_gender='FEMALE'),
    'male-us': VoiceConfig(language_code='en-US', name='en-US-Wavenet-D', ssml_gender='MALE'),
    'female-uk': VoiceConfig(language_code='en-GB', name='en-GB-Wavenet-A', ssml_gender='FEMALE'),
    'male-uk': VoiceConfig(language_code='en-GB', name='en-GB-Wavenet-B', ssml_gender='MALE'),
    'neural-us': VoiceConfig(language_code='en-US', name='en-US-Neural2-A', ssml_gender='NEUTRAL'),
    'standard-us': VoiceConfig(language_code='en-US', name='en-US-Standard-A', ssml_gender='NEUTRAL'),
}

def get_voice_preset(preset_name: Optional[str]) -> VoiceConfig:
    return VOICE_PRESETS.get(preset_name or '', VOICE_PRESETS['standard-us'])

def _random_suffix() -> str:
    return uuid.uuid4().hex[:11]

class TextToSpeechService:
    """Text in, publicly hosted MP3 out"""

    def __init__(self, tts_client, storage_client, firestore_client, bucket_name: str,
                 bucket_location: str = 'US', audio_collection: str = 'audioFiles',
                 save_to_firestore: bool = True):
        self.tts = tts_client
        self.storage = storage_client
        self.db = firestore_client
        self.bucket_name = bucket_name
        self.bucket_location = bucket_location
        self.audio_collection = audio_collection
        self.save_to_firestore = save_to_firestore
        logger.info(f"Text-to-speech service initialized with bucket: {bucket_name}")

    @classmethod
    def from_settings(cls, settings: Settings, firestore_client, tts_client=None, storage_client=None) -> "TextToSpeechService":
        return cls(
            tts_client=tts_client or texttospeech.TextToSpeechClient(),
            storage_client=storage_client or storage.Client(project=settings.google_cloud_project or None),
            firestore_client=firestore_client,
            bucket_name=settings.bucket_name,
            bucket_location=settings.tts_bucket_location,
            audio_collection=settings.audio_files_collection,
            save_to_firestore=settings.tts_save_to_firestore
        )

    async def _in_executor(self, call):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, call)

    async def convert_text_to_audio(self, text: str, voice: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Synthesize speech with the voice/audio config merged over the defaults"""
        voice = dict(voice or {})
        audio_overrides = voice.pop('audioConfig', None) or voice.pop('audio_config', None) or {}
        try:
            # Overrides may use either camelCase or snake_case keys
            voice_config = VoiceConfig().model_copy(
                update=VoiceConfig.model_validate(voice).model_dump(exclude_unset=True)
            )
            audio_config = AudioConfig().model_copy(
                update=AudioConfig.model_validate(audio_overrides).model_dump(exclude_unset=True)
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid voice configuration: {e.errors()[0]['msg']}")

        try:
            ssml_gender = texttospeech.SsmlVoiceGender[voice_config.ssml_gender.upper()]
            audio_encoding = texttospeech.AudioEncoding[audio_config.audio_encoding.upper()]
        except KeyError as e:
            raise ValidationError(f"Unsupported voice setting: {e.args[0]}")

        logger.info(f"Converting text to audio with voice {voice_config.name}: {text[:100]}...")
        try:
            response = await self._in_executor(lambda: self.tts.synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=texttospeech.VoiceSelectionParams(
                    language_code=voice_config.language_code,
                    name=voice_config.name,
                    ssml_gender=ssml_gender
                ),
                audio_config=texttospeech.AudioConfig(
                    audio_encoding=audio_encoding,
                    speaking_rate=audio_config.speaking_rate,
                    pitch=audio_config.pitch,
                    volume_gain_db=audio_config.volume_gain_db
                ),
                retry=None
            ))
        except GoogleAPIError as e:
            logger.error(f"Text-to-Speech error: {str(e)}")
            raise RemoteServiceError(f"Failed to convert text to audio: {str(e)}")

        audio = response.audio_content
        logger.info(f"Audio generated successfully: {len(audio)} bytes")
        return {
            'audio': audio,
            'voice': voice_config,
            'audio_config': audio_config,
            'text_length': len(text),
            'audio_size': len(audio),
        }

    async def upload_audio_to_bucket(self, audio: bytes, bucket_name: str, file_path: str,
                                     metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        object_metadata = {
            'uploadedAt': datetime.now(timezone.utc).isoformat(),
            'audioSize': str(len(audio)),
            'source': SOURCE,
            **(metadata or {}),
        }

        def upload():
            target = bucket_helpers.ensure_bucket(self.storage, bucket_name, location=self.bucket_location)
            return bucket_helpers.upload_bytes(
                target, file_path, audio, AUDIO_MIME_TYPE,
                metadata=object_metadata,
                cache_control='public, max-age=3600'
            )

        public_url = await self._in_executor(upload)
        logger.info(f"Audio uploaded successfully: {public_url}")
        return {
            'bucket_name': bucket_name,
            'file_path': file_path,
            'public_url': public_url,
            'file_size': len(audio),
        }

    async def save_audio_metadata(self, audio_data: Dict[str, Any], text: str,
                                  upload_data: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> str:
        audio_id = f"audio_{int(time.time() * 1000)}_{_random_suffix()}"
        document = {
            'audioId': audio_id,
            'fileName': upload_data['file_path'].split('/')[-1],
            'filePath': upload_data['file_path'],
            'publicUrl': upload_data['public_url'],
            'bucketName': upload_data['bucket_name'],
            'originalText': text,
            'textLength': len(text),
            'audioSize': audio_data['audio_size'],
            'mimeType': AUDIO_MIME_TYPE,
            'voice': audio_data['voice'].to_json(),
            'audioConfig': audio_data['audio_config'].to_json(),
            'source': SOURCE,
            'createdAt': firestore.SERVER_TIMESTAMP,
            'updatedAt': firestore.SERVER_TIMESTAMP,
            'isPublic': True,
            'downloadCount': 0,
            'playCount': 0,
            'status': 'active',
            'metadata': metadata or {},
        }

        try:
            await self._in_executor(
                lambda: self.db.collection(self.audio_collection).document(audio_id).set(document, retry=None)
            )
        except GoogleAPIError as e:
            logger.error(f"Error saving audio metadata: {str(e)}")
            raise RemoteServiceError(f"Failed to save metadata: {str(e)}")

        logger.info(f"Audio metadata saved to Firestore: {audio_id}")
        return audio_id

    async def text_to_audio(self, text: str, bucket_name: Optional[str] = None, voice: Optional[Dict[str, Any]] = None,
                            file_name: Optional[str] = None, save_to_firestore: Optional[bool] = None,
                            metadata: Optional[Dict[str, Any]] = None) -> TextToAudioResult:
        """Synthesize, upload, then optionally record metadata. A failed step aborts; earlier steps stay done."""
        if not text:
            raise ValidationError("Text is required")

        bucket_name = bucket_name or self.bucket_name
        if save_to_firestore is None:
            save_to_firestore = self.save_to_firestore
        metadata = metadata or {}

        audio_data = await self.convert_text_to_audio(text, voice)

        final_file_name = file_name or f"tts_{int(time.time() * 1000)}_{_random_suffix()}.mp3"
        file_path = f"audio/{final_file_name}"

        upload_data = await self.upload_audio_to_bucket(
            audio_data['audio'],
            bucket_name,
            file_path,
            {
                'originalText': text[:200],
                'textLength': str(len(text)),
                'voice': audio_data['voice'].name,
                **{key: str(value) for key, value in metadata.items()},
            }
        )

        audio_id = None
        if save_to_firestore:
            audio_id = await self.save_audio_metadata(audio_data, text, upload_data, metadata)

        return TextToAudioResult(
            public_url=upload_data['public_url'],
            audio_id=audio_id,
            file_name=final_file_name,
            file_path=file_path,
            bucket_name=bucket_name,
            audio_size=audio_data['audio_size'],
            text_length=len(text),
            voice=audio_data['voice'],
            generated_at=datetime.now(timezone.utc).isoformat(),
            saved_to_firestore=save_to_firestore,
            firestore_doc_id=audio_id
        )
