from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
from typing import Callable, Dict, List, Optional, Sequence
from pydantic import BaseModel
import logging
from lib.error_handler import ConfigurationError, RemoteServiceError

logger = logging.getLogger(__name__)

class ChannelCredential(BaseModel):
    account_sid: str
    auth_token: str
    from_number: str = ''

SelectionPolicy = Callable[[Sequence[ChannelCredential]], ChannelCredential]

def first_credential(credentials: Sequence[ChannelCredential]) -> ChannelCredential:
    return credentials[0]

class ChannelCredentialProvider:
    """Ordered pool of channel credentials with a swappable selection policy"""

    def __init__(self, credentials: Sequence[ChannelCredential], policy: SelectionPolicy = first_credential):
        self.credentials: List[ChannelCredential] = list(credentials)
        self.policy = policy

    def select(self) -> ChannelCredential:
        if not self.credentials:
            raise ConfigurationError("No Twilio channel credentials configured")
        return self.policy(self.credentials)

class TwilioClient:
    def __init__(self, provider: ChannelCredentialProvider, client_factory: Optional[Callable[[str, str], Client]] = None):
        self.provider = provider
        self.client_factory = client_factory or Client
        self._clients: Dict[str, Client] = {}

    def _client_for(self, credential: ChannelCredential) -> Client:
        client = self._clients.get(credential.account_sid)
        if client is None:
            client = self.client_factory(credential.account_sid, credential.auth_token)
            self._clients[credential.account_sid] = client
        return client

    @property
    def default_from(self) -> str:
        return self.provider.select().from_number

    def send_message(self, body: str, from_: str, to: str):
        """Send a message and return Twilio's message resource."""
        credential = self.provider.select()
        try:
            message = self._client_for(credential).messages.create(
                body=body,
                from_=from_,
                to=to
            )
            logger.info(f"Message sent successfully to {to}: {message.sid}")
            return message
        except TwilioRestException as e:
            logger.error(f"Twilio error sending message: {str(e)}")
            if e.code == 21608:  # Unverified number
                raise RemoteServiceError("This phone number is not verified with our test account.")
            elif e.code == 21211:  # Invalid phone number
                raise RemoteServiceError("Invalid phone number format.")
            raise RemoteServiceError(f"Failed to send message: {e.msg}")
