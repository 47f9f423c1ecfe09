import logging
from dataclasses import dataclass
from api.config import Settings
from api.services.agent import AgentService
from api.services.audio import AudioService
from api.services.media import MediaService
from api.services.sms import SMSService
from api.services.storage import SessionStore, create_firestore_client
from api.services.tts import TextToSpeechService
from api.services.vision import VisionService
from api.services.webhook import WebhookService
from lib.twilio_client import TwilioClient

logger = logging.getLogger(__name__)

@dataclass
class Services:
    settings: Settings
    agent: AgentService
    audio: AudioService
    sms: SMSService
    sessions: SessionStore
    tts: TextToSpeechService
    webhook: WebhookService

def build_services(settings: Settings) -> Services:
    """Construct every vendor client once from one Settings object"""
    logger.info("Initializing services...")
    provider = settings.credential_provider()
    firestore_client = create_firestore_client(settings)

    agent = AgentService.from_settings(settings)
    audio = AudioService.from_settings(settings)
    sms = SMSService(TwilioClient(provider), whatsapp_from=settings.whatsapp_from_number)
    sessions = SessionStore(firestore_client, collection=settings.sessions_collection)
    tts = TextToSpeechService.from_settings(settings, firestore_client=firestore_client)

    webhook = WebhookService(
        agent=agent,
        sms=sms,
        media=MediaService(provider),
        audio=audio,
        vision=VisionService(),
        sessions=sessions,
        session_prefix=settings.whatsapp_session_prefix,
        fallback_reply=settings.reply_fallback_text,
        deduplicate=settings.webhook_deduplicate
    )

    logger.info("All services initialized successfully")
    return Services(
        settings=settings,
        agent=agent,
        audio=audio,
        sms=sms,
        sessions=sessions,
        tts=tts,
        webhook=webhook
    )
