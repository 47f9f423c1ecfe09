import asyncio
import logging
import time
import uuid
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import dialogflowcx_v3 as dialogflow

from api.config import Settings
from api.models import IntentMatch, PageInfo, RawQuery, TurnResult
from lib.error_handler import RemoteServiceError, ValidationError

logger = logging.getLogger(__name__)

CREDENTIALS_HELP = (
    "Authentication setup required: set GOOGLE_APPLICATION_CREDENTIALS to a service "
    "account key file or run `gcloud auth application-default login`"
)

def create_sessions_client(settings: Settings) -> dialogflow.SessionsClient:
    return dialogflow.SessionsClient(
        client_options={"api_endpoint": settings.dialogflow_endpoint}
    )

def generate_session_id(user_id: Optional[str] = None) -> str:
    """Create a session id: `{user_id}_{ms}` or `session_{ms}_{random}`"""
    timestamp = int(time.time() * 1000)
    if user_id:
        return f"{user_id}_{timestamp}"
    return f"session_{timestamp}_{uuid.uuid4().hex[:13]}"

def _to_native(value: Any) -> Any:
    # Struct values arrive as proto-plus map/repeated composites
    if isinstance(value, Mapping):
        return {key: _to_native(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [_to_native(item) for item in value]
    return value

class AgentService:
    """Client for a Dialogflow CX agent"""

    def __init__(self, sessions_client, project_id: str, location: str, agent_id: str, language_code: str = 'en'):
        self.client = sessions_client
        self.project_id = project_id
        self.location = location
        self.agent_id = agent_id
        self.language_code = language_code
        logger.info(f"Agent service initialized for agent {agent_id} in {project_id}/{location}")

    @classmethod
    def from_settings(cls, settings: Settings, sessions_client=None) -> "AgentService":
        return cls(
            sessions_client=sessions_client or create_sessions_client(settings),
            project_id=settings.google_cloud_project,
            location=settings.dialogflow_location,
            agent_id=settings.dialogflow_agent_id,
            language_code=settings.dialogflow_language_code
        )

    def session_path(self, session_id: str) -> str:
        return dialogflow.SessionsClient.session_path(
            self.project_id, self.location, self.agent_id, session_id
        )

    async def send_message(self, text: str, session_id: str, language_code: Optional[str] = None) -> TurnResult:
        """Send one text query to the agent and return the normalized turn result"""
        if not text:
            raise ValidationError("Message is required")

        language_code = language_code or self.language_code
        session_path = self.session_path(session_id)
        logger.info(f"Sending message to Dialogflow CX session {session_path}: {text[:50]}")

        request = dialogflow.DetectIntentRequest(
            session=session_path,
            query_input=dialogflow.QueryInput(
                text=dialogflow.TextInput(text=text),
                language_code=language_code
            )
        )

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.detect_intent(request=request, retry=None)
            )
        except DefaultCredentialsError as e:
            logger.error(f"Dialogflow CX credentials missing. {CREDENTIALS_HELP}")
            raise RemoteServiceError(f"Failed to send message to Dialogflow CX: {str(e)}")
        except GoogleAPIError as e:
            logger.error(f"Error sending message to Dialogflow CX: {str(e)}")
            raise RemoteServiceError(f"Failed to send message to Dialogflow CX: {str(e)}")

        result = self.format_response(response)
        logger.info(f"Received {len(result.messages)} message(s) from Dialogflow CX")
        return result

    def format_response(self, response) -> TurnResult:
        """Flatten a DetectIntentResponse into a TurnResult"""
        query_result = response.query_result

        messages = []
        for message in query_result.response_messages or []:
            text = getattr(message, 'text', None)
            if text is not None and text.text:
                messages.extend(str(fragment) for fragment in text.text)

        match = getattr(query_result, 'match', None)
        confidence = query_result.intent_detection_confidence or getattr(match, 'confidence', 0) or 0

        intent = None
        source_intent = query_result.intent
        if not (source_intent and source_intent.name) and match is not None:
            source_intent = getattr(match, 'intent', None)
        if source_intent and source_intent.name:
            intent = IntentMatch(
                name=source_intent.name,
                display_name=source_intent.display_name,
                confidence=confidence
            )

        current_page = None
        page = query_result.current_page
        if page and page.name:
            current_page = PageInfo(name=page.name, display_name=page.display_name)

        return TurnResult(
            session_id=response.response_id,
            messages=messages,
            intent=intent,
            parameters=_to_native(query_result.parameters or {}),
            current_page=current_page,
            language_code=query_result.language_code,
            raw=RawQuery(query_text=query_result.text, confidence=confidence)
        )
