from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
import base64
import binascii
import logging
import time
from datetime import datetime, timezone

from .dependencies import Services
from .services.agent import generate_session_id
from .services.audio import AUDIO_MIME_TYPES, DEFAULT_AUDIO_MIME_TYPE, is_audio_mime_type
from .services.tts import get_voice_preset
from lib.error_handler import AppError, ErrorHandler, ValidationError

# Create logger for this file
logger = logging.getLogger(__name__)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}

def _require(body: dict, *fields: str) -> None:
    missing = [field for field in fields if not body.get(field)]
    if missing:
        raise ValidationError(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")
    _require_strings(body, *fields)

def _require_strings(body: dict, *fields: str) -> None:
    for field in fields:
        if body.get(field) is not None and not isinstance(body[field], str):
            raise ValidationError(f"{field} must be a string")

def _read_audio_upload():
    """Return (audio bytes, mime type) from a multipart 'audio' field or a JSON base64 payload"""
    try:
        upload = request.files.get('audio')
    except RequestEntityTooLarge:
        raise ValidationError("File upload error: File too large")
    if upload is not None:
        mime_type = upload.mimetype or DEFAULT_AUDIO_MIME_TYPE
        if mime_type not in AUDIO_MIME_TYPES:
            raise ValidationError("Invalid file type. Only audio files are allowed.")
        audio = upload.read()
        logger.info(f"Received audio file via form-data: {upload.filename} ({mime_type}, {len(audio)} bytes)")
        return audio, mime_type

    body = _json_body()
    if body.get('audio'):
        mime_type = body.get('mimeType') or DEFAULT_AUDIO_MIME_TYPE
        if not isinstance(mime_type, str) or not is_audio_mime_type(mime_type):
            raise ValidationError("Invalid file type. Only audio files are allowed.")
        try:
            audio = base64.b64decode(body['audio'], validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise ValidationError("Invalid base64 audio data")
        logger.info(f"Received audio data via JSON payload: {len(audio)} bytes")
        return audio, mime_type

    raise ValidationError(
        "Audio file is required (either via form-data 'audio' field or JSON 'audio' property)"
    )

def create_app(services: Services) -> Flask:
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = services.settings.max_upload_bytes
    app.extensions['services'] = services
    CORS(app)

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        body, status = ErrorHandler.to_response(error)
        return jsonify(body), status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return jsonify({'success': False, 'error': "File upload error: File too large"}), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({'success': False, 'error': error.description}), error.code
        body, status = ErrorHandler.to_response(error)
        return jsonify(body), status

    @app.route("/ping", methods=['GET'])
    def ping():
        """Liveness probe"""
        logger.info("Ping API called")
        return jsonify({
            'status': 'success',
            'message': 'Pong! The relay service is working.',
            'timestamp': _now(),
            'method': request.method,
            'userAgent': request.headers.get('User-Agent') or 'Unknown'
        })

    @app.route("/health", methods=['GET'])
    def health():
        """Report the agent this service talks to"""
        agent = services.agent
        return jsonify({
            'success': True,
            'message': 'Dialogflow CX service is ready',
            'projectId': agent.project_id,
            'location': agent.location,
            'timestamp': _now()
        })

    @app.route("/chat", methods=['POST'])
    async def chat():
        """Send a message to the Dialogflow CX agent"""
        body = _json_body()
        if not body.get('message'):
            raise ValidationError("Message is required")
        _require_strings(body, 'message', 'sessionId', 'languageCode')

        session_id = body.get('sessionId') or generate_session_id()
        logger.info(f"Processing message: \"{body['message'][:50]}\" for session: {session_id}")

        try:
            result = await services.agent.send_message(
                body['message'],
                session_id,
                body.get('languageCode')
            )
        except AppError as e:
            logger.error(f"Error in chat endpoint: {e.message}")
            return jsonify({
                'success': False,
                'error': e.message,
                'details': 'Failed to process message with Dialogflow CX'
            }), e.status_code

        return jsonify({
            'success': True,
            'data': result.to_json(),
            'sessionId': session_id
        })

    @app.route("/whatsapp-callback", methods=['POST'])
    async def whatsapp_callback():
        """Handle incoming WhatsApp webhooks from Twilio"""
        try:
            payload = request.form.to_dict() if request.form else _json_body()
            logger.info(f"WhatsApp callback from {payload.get('From')} (sid={payload.get('MessageSid')})")

            await services.webhook.handle_inbound_message(payload)
            return jsonify({'success': True})
        except Exception as e:
            body, status = ErrorHandler.handle_webhook_error(e)
            return jsonify(body), status

    @app.route("/send-whatsapp-message", methods=['POST'])
    async def send_whatsapp_message():
        body = _json_body()
        _require(body, 'message', 'to')

        receipt = await services.sms.send_whatsapp_message(body['message'], body['to'])
        logger.info(f"WhatsApp message queued: {getattr(receipt, 'sid', None)}")
        return jsonify({'success': True})

    @app.route("/send-sms", methods=['POST'])
    async def send_sms():
        body = _json_body()
        _require(body, 'to', 'message')

        receipt = await services.sms.send_sms(body['to'], body['message'])
        logger.info(f"SMS queued: {getattr(receipt, 'sid', None)}")
        return jsonify({'success': True})

    @app.route("/get-audio-response", methods=['POST'])
    async def get_audio_response():
        """Transcribe uploaded audio and answer it with the agent"""
        try:
            audio, mime_type = _read_audio_upload()
            if not audio:
                raise ValidationError("Audio buffer is empty or invalid")

            transcript = await services.audio.transcribe_audio(audio, mime_type)
            if not transcript:
                raise ValidationError("Could not transcribe audio")

            session_id = f"audio_session_{int(time.time() * 1000)}"
            result = await services.agent.send_message(transcript, session_id)

            return jsonify({
                'success': True,
                'transcript': transcript,
                'response': result.first_message or "No response from agent",
                'sessionId': session_id
            })
        except Exception as e:
            body, status = ErrorHandler.handle_audio_error(e)
            return jsonify(body), status

    @app.route("/text-to-audio", methods=['POST'])
    async def text_to_audio():
        """Synthesize text and return a public audio URL"""
        body = _json_body()
        _require(body, 'text')
        _require_strings(body, 'preset', 'fileName')
        for field in ('voice', 'metadata'):
            if body.get(field) is not None and not isinstance(body[field], dict):
                raise ValidationError(f"{field} must be an object")

        voice = body.get('voice')
        if voice is None and body.get('preset'):
            voice = get_voice_preset(body["preset"]).to_json()

        result = await services.tts.text_to_audio(
            body['text'],
            voice=voice,
            file_name=body.get('fileName'),
            save_to_firestore=body.get('saveToFirestore'),
            metadata=body.get('metadata')
        )
        return jsonify(result.to_json())

    return app
