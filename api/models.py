from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

class IntentMatch(CamelModel):
    name: str
    display_name: str
    confidence: float = 0.0

class PageInfo(CamelModel):
    name: str
    display_name: str

class RawQuery(CamelModel):
    query_text: Optional[str] = None
    confidence: Optional[float] = None

class TurnResult(CamelModel):
    """Normalized output of one query to the conversational agent"""
    success: bool = True
    session_id: Optional[str] = None
    messages: List[str] = []
    intent: Optional[IntentMatch] = None
    parameters: Dict[str, Any] = {}
    current_page: Optional[PageInfo] = None
    language_code: Optional[str] = None
    raw: RawQuery = RawQuery()

    @property
    def first_message(self) -> Optional[str]:
        return self.messages[0] if self.messages else None

class ImageAnnotation(CamelModel):
    labels: List[str] = []
    text: str = ''

class VoiceConfig(CamelModel):
    language_code: str = 'en-US'
    name: str = 'en-US-Standard-A'
    ssml_gender: str = 'NEUTRAL'

class AudioConfig(CamelModel):
    audio_encoding: str = 'MP3'
    speaking_rate: float = 1.0
    pitch: float = 0.0
    volume_gain_db: float = 0.0

class TextToAudioResult(CamelModel):
    success: bool = True
    public_url: str
    audio_id: Optional[str] = None
    file_name: str
    file_path: str
    bucket_name: str
    audio_size: int
    text_length: int
    voice: VoiceConfig
    generated_at: str
    saved_to_firestore: bool
    firestore_doc_id: Optional[str] = None
