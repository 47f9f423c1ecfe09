import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from api.models import TurnResult
from api.services.agent import AgentService, generate_session_id
from api.services.audio import AudioService
from api.services.media import AudioMessage, ImageMessage, InboundMedia, MediaService, media_from_payload
from api.services.sms import SMSService
from api.services.storage import SessionStore
from api.services.vision import VisionService
from lib.error_handler import NotFoundError, RemoteServiceError, ValidationError

logger = logging.getLogger(__name__)

class WebhookService:
    """Relays one inbound channel message to the agent and sends one reply back"""

    def __init__(self, agent: AgentService, sms: SMSService, media: MediaService, audio: AudioService,
                 vision: VisionService, sessions: SessionStore, session_prefix: str = 'whatsapp-',
                 fallback_reply: str = '', deduplicate: bool = True):
        self.agent = agent
        self.sms = sms
        self.media = media
        self.audio = audio
        self.vision = vision
        self.sessions = sessions
        self.session_prefix = session_prefix
        self.fallback_reply = fallback_reply
        self.deduplicate = deduplicate

    async def resolve_message(self, inbound: InboundMedia) -> str:
        """Turn the inbound media into the text the agent should see"""
        if isinstance(inbound, AudioMessage):
            logger.info(f"Audio message detected: {inbound.content_type}")
            audio = await self.media.download(inbound.media_url)
            transcript = await self.audio.transcribe_audio(audio, inbound.content_type)
            if not transcript:
                raise RemoteServiceError("Could not transcribe audio")
            return transcript

        if isinstance(inbound, ImageMessage):
            logger.info("Image message detected")
            image = await self.media.download(inbound.media_url)
            annotation = await self.vision.annotate_image(image)
            logger.info(f"Image labels: {annotation.labels}")
            return annotation.text

        logger.info("Text message detected")
        return inbound.body

    def session_id_for(self, wa_id: Optional[str]) -> str:
        if wa_id:
            return f"{self.session_prefix}{wa_id}"
        return generate_session_id()

    def select_reply(self, result: TurnResult) -> str:
        # Only the first fragment goes back over the channel
        if len(result.messages) > 1:
            logger.warning(f"Agent returned {len(result.messages)} fragments; sending only the first")
        return result.first_message or self.fallback_reply

    async def is_redelivery(self, session_key: str, message_sid: Optional[str]) -> bool:
        if not (self.deduplicate and message_sid):
            return False
        record = await self.sessions.get_session(session_key)
        return bool(record) and record.get('lastMessageSid') == message_sid

    async def handle_inbound_message(self, payload: Mapping[str, Any]):
        """Run the full pipeline for one webhook payload; returns the delivery receipt or None for a redelivery"""
        from_number = payload.get('From')
        to_number = payload.get('To')
        wa_id = payload.get('WaId')
        message_sid = payload.get('MessageSid')
        session_key = wa_id or from_number

        if not from_number or not to_number:
            raise ValidationError("Webhook payload is missing From/To addresses")

        if await self.is_redelivery(session_key, message_sid):
            logger.info(f"Skipping redelivered message {message_sid} from {from_number}")
            return None

        session_id = self.session_id_for(wa_id)
        try:
            message = await self.resolve_message(media_from_payload(payload))

            if message:
                logger.info(f"Processing message: \"{message[:50]}\" for session: {session_id}")
                result = await self.agent.send_message(message, session_id, payload.get('languageCode'))
                reply = self.select_reply(result)
            else:
                logger.warning(f"No text resolved for message from {from_number}; sending fallback reply")
                reply = self.fallback_reply

            receipt = await self.sms.send_message(reply, from_=to_number, to=from_number)

            await self.sessions.create_or_update_session(session_key, {
                'sessionId': session_id,
                'channel': 'whatsapp',
                'lastMessageSid': message_sid,
                'lastMessageAt': datetime.now(timezone.utc).isoformat(),
                'errorCount': 0,
            })
            return receipt
        except Exception:
            await self._record_failure(session_key)
            raise

    async def _record_failure(self, session_key: str) -> None:
        try:
            await self.sessions.increment_error_count(session_key)
        except NotFoundError:
            logger.info(f"No session record for {session_key}; error count not tracked")
        except Exception as e:
            # The pipeline error is re-raised by the caller
            logger.error(f"Failed to record error count for {session_key}: {str(e)}", exc_info=e)
