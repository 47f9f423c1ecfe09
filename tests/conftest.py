import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timezone
from types import SimpleNamespace
import sys
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from google.api_core.exceptions import NotFound
from google.cloud import firestore

from api.config import Settings
from api.dependencies import Services
from api.models import ImageAnnotation, TurnResult
from api.routes import create_app
from api.services.agent import AgentService
from api.services.audio import AudioService
from api.services.media import MediaService
from api.services.sms import SMSService
from api.services.storage import SessionStore
from api.services.tts import TextToSpeechService
from api.services.vision import VisionService
from api.services.webhook import WebhookService
from lib.twilio_client import ChannelCredential

TEST_SENDER = "whatsapp:+15550001111"
TEST_RECIPIENT = "whatsapp:+14155238886"

# In-memory stand-in for the parts of google.cloud.firestore.Client we use

class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None

class FakeDocument:
    def __init__(self, store, doc_id):
        self.store = store
        self.id = doc_id

    def _apply(self, current, data):
        result = dict(current)
        for key, value in data.items():
            if value is firestore.SERVER_TIMESTAMP:
                result[key] = datetime.now(timezone.utc)
            elif isinstance(value, firestore.Increment):
                result[key] = result.get(key, 0) + value.value
            else:
                result[key] = value
        return result

    def set(self, data, merge=False, retry=None):
        current = self.store.get(self.id, {}) if merge else {}
        self.store[self.id] = self._apply(current, data)

    def update(self, data, retry=None):
        if self.id not in self.store:
            raise NotFound(f"No document to update: {self.id}")
        self.store[self.id] = self._apply(self.store[self.id], data)

    def get(self, retry=None):
        return FakeSnapshot(self.id, self.store.get(self.id))

    def delete(self, retry=None):
        self.store.pop(self.id, None)

class FakeQuery:
    def __init__(self, store, limit):
        self.store = store
        self._limit = limit

    def stream(self, retry=None):
        for doc_id in list(self.store)[:self._limit]:
            yield FakeSnapshot(doc_id, self.store[doc_id])

class FakeCollection:
    def __init__(self, store):
        self.store = store

    def document(self, doc_id):
        return FakeDocument(self.store, doc_id)

    def limit(self, count):
        return FakeQuery(self.store, count)

class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return FakeCollection(self.collections.setdefault(name, {}))

@pytest.fixture
def fake_firestore():
    return FakeFirestore()

@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        google_cloud_project='test-project',
        dialogflow_location='asia-south1',
        dialogflow_agent_id='agent-123',
        tts_bucket_name='test-bucket',
        twilio_credentials=[
            ChannelCredential(account_sid='AC-first', auth_token='token-1', from_number='+15550000001'),
            ChannelCredential(account_sid='AC-second', auth_token='token-2', from_number='+15550000002'),
        ],
        reply_fallback_text='Fallback reply'
    )

def make_turn_result(*messages, **kwargs) -> TurnResult:
    return TurnResult(messages=list(messages), session_id='response-1', language_code='en', **kwargs)

@pytest.fixture
def mock_agent():
    agent = MagicMock(spec=AgentService)
    agent.project_id = 'test-project'
    agent.location = 'asia-south1'
    agent.send_message = AsyncMock(return_value=make_turn_result("Hello from the agent"))
    return agent

@pytest.fixture
def mock_audio():
    audio = MagicMock(spec=AudioService)
    audio.transcribe_audio = AsyncMock(return_value="What is the weather today?")
    return audio

@pytest.fixture
def mock_vision():
    vision = MagicMock(spec=VisionService)
    vision.annotate_image = AsyncMock(return_value=ImageAnnotation(labels=['Leaf', 'Plant'], text='Rice blast'))
    return vision

@pytest.fixture
def mock_media():
    media = MagicMock(spec=MediaService)
    media.download = AsyncMock(return_value=b"media-bytes")
    return media

@pytest.fixture
def mock_sms():
    sms = MagicMock(spec=SMSService)
    sms.send_message = AsyncMock(return_value=SimpleNamespace(sid='SM-reply'))
    sms.send_whatsapp_message = AsyncMock(return_value=SimpleNamespace(sid='SM-whatsapp'))
    sms.send_sms = AsyncMock(return_value=SimpleNamespace(sid='SM-sms'))
    return sms

@pytest.fixture
def session_store(fake_firestore):
    return SessionStore(fake_firestore, collection='sessions')

@pytest.fixture
def mock_tts():
    return MagicMock(spec=TextToSpeechService)

@pytest.fixture
def webhook_service(mock_agent, mock_sms, mock_media, mock_audio, mock_vision, session_store):
    return WebhookService(
        agent=mock_agent,
        sms=mock_sms,
        media=mock_media,
        audio=mock_audio,
        vision=mock_vision,
        sessions=session_store,
        fallback_reply='Fallback reply'
    )

@pytest.fixture
def services(settings, mock_agent, mock_audio, mock_sms, session_store, mock_tts, webhook_service):
    return Services(
        settings=settings,
        agent=mock_agent,
        audio=mock_audio,
        sms=mock_sms,
        sessions=session_store,
        tts=mock_tts,
        webhook=webhook_service
    )

@pytest.fixture
def test_client(services):
    app = create_app(services)
    app.config['TESTING'] = True
    return app.test_client()
