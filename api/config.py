from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from lib.twilio_client import ChannelCredential, ChannelCredentialProvider

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore', case_sensitive=False)

    # Google Cloud settings
    google_cloud_project: str = ''

    # Dialogflow CX settings
    dialogflow_location: str = 'asia-south1'
    dialogflow_agent_id: str = ''
    dialogflow_language_code: str = 'en'
    dialogflow_api_endpoint: Optional[str] = None

    # Vertex AI settings
    vertex_location: str = 'asia-south1'
    vertex_model: str = 'gemini-2.5-flash'
    transcription_prompt: str = 'Please transcribe this audio file and return only the spoken text.'

    # Firestore settings
    firestore_database: str = '(default)'
    sessions_collection: str = 'sessions'
    audio_files_collection: str = 'audioFiles'

    # Text-to-speech settings
    tts_bucket_name: Optional[str] = None
    tts_bucket_location: str = 'US'
    tts_save_to_firestore: bool = True

    # Twilio settings
    twilio_credentials: List[ChannelCredential] = []
    twilio_account_sid: str = ''
    twilio_auth_token: str = ''
    twilio_phone_number: str = ''
    whatsapp_from_number: str = 'whatsapp:+14155238886'

    # Webhook settings
    whatsapp_session_prefix: str = 'whatsapp-'
    webhook_deduplicate: bool = True
    reply_fallback_text: str = "Sorry, I don't have an answer for that right now. Please try again."

    # Server settings
    max_upload_bytes: int = 10 * 1024 * 1024
    port: int = 5050

    @property
    def dialogflow_endpoint(self) -> str:
        return self.dialogflow_api_endpoint or f"{self.dialogflow_location}-dialogflow.googleapis.com"

    @property
    def bucket_name(self) -> str:
        return self.tts_bucket_name or f"{self.google_cloud_project}-vertex-audio"

    @property
    def channel_credentials(self) -> List[ChannelCredential]:
        if self.twilio_credentials:
            return list(self.twilio_credentials)
        if self.twilio_account_sid and self.twilio_auth_token:
            return [ChannelCredential(
                account_sid=self.twilio_account_sid,
                auth_token=self.twilio_auth_token,
                from_number=self.twilio_phone_number
            )]
        return []

    def credential_provider(self) -> ChannelCredentialProvider:
        return ChannelCredentialProvider(self.channel_credentials)

def get_settings() -> Settings:
    return Settings()
