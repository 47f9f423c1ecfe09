import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
import aiohttp
from api.services.audio import is_audio_mime_type
from lib.error_handler import RemoteServiceError
from lib.twilio_client import ChannelCredentialProvider

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = frozenset({'image/jpeg'})

@dataclass(frozen=True)
class TextMessage:
    body: str

@dataclass(frozen=True)
class AudioMessage:
    media_url: str
    content_type: str

@dataclass(frozen=True)
class ImageMessage:
    media_url: str
    content_type: str

InboundMedia = Union[TextMessage, AudioMessage, ImageMessage]

def resolve_inbound_media(body: Optional[str], media_url: Optional[str], content_type: Optional[str]) -> InboundMedia:
    """Pick the media kind once per inbound payload; anything unrecognized is text"""
    normalized = (content_type or '').split(';')[0].strip().lower()
    if media_url and is_audio_mime_type(normalized):
        return AudioMessage(media_url=media_url, content_type=normalized)
    if media_url and normalized in IMAGE_MIME_TYPES:
        return ImageMessage(media_url=media_url, content_type=normalized)
    return TextMessage(body=body or '')

def media_from_payload(payload: Mapping[str, Any]) -> InboundMedia:
    return resolve_inbound_media(
        body=payload.get('Body'),
        media_url=payload.get('MediaUrl0'),
        content_type=payload.get('MediaContentType0')
    )

class MediaService:
    """Fetches channel media using the selected channel credential"""

    def __init__(self, provider: ChannelCredentialProvider, max_redirects: int = 5):
        self.provider = provider
        self.max_redirects = max_redirects

    async def download(self, url: str) -> bytes:
        credential = self.provider.select()
        auth = aiohttp.BasicAuth(login=credential.account_sid, password=credential.auth_token)

        logger.info(f"Downloading media from {url}")
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, auth=auth, max_redirects=self.max_redirects) as response:
                    if response.status != 200:
                        logger.error(f"Failed to download media: {response.status}")
                        raise RemoteServiceError(f"Failed to download media: HTTP {response.status}")
                    data = await response.read()
        except aiohttp.ClientError as e:
            logger.error(f"Failed to download media: {str(e)}")
            raise RemoteServiceError(f"Failed to download media: {str(e)}")

        logger.info(f"Media downloaded: {len(data)} bytes")
        return data
