import logging
import asyncio
from typing import Optional
from lib.twilio_client import TwilioClient

logger = logging.getLogger(__name__)

class SMSService:
    def __init__(self, twilio_client: TwilioClient, whatsapp_from: str):
        self.client = twilio_client
        self.whatsapp_from = whatsapp_from
        logger.info(f"SMS service initialized with WhatsApp sender: {whatsapp_from}")

    async def send_message(self, body: str, from_: str, to: str):
        """Send a message over the first channel credential and return the delivery receipt"""
        logger.info(f"Sending message to {to}: {body[:20]}...")
        # Run Twilio API call in an executor to prevent blocking
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.client.send_message(body=body, from_=from_, to=to)
        )

    async def send_whatsapp_message(self, body: str, to: str, from_: Optional[str] = None):
        if not to.startswith('whatsapp:'):
            to = f"whatsapp:{to}"
        return await self.send_message(body, from_ or self.whatsapp_from, to)

    async def send_sms(self, to: str, body: str):
        return await self.send_message(body, self.client.default_from, to)
