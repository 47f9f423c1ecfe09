from typing import Optional, Tuple, Dict, Any
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, user_message: Optional[str] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.user_message = user_message or message
        super().__init__(self.message)

class ValidationError(AppError):
    """Missing or malformed required input"""
    status_code = 400

class NotFoundError(AppError):
    """Session or file absent where presence is assumed"""
    status_code = 404

class RemoteServiceError(AppError):
    """Failure reported by Dialogflow, Vertex AI, Vision, Storage, Firestore or Twilio"""
    status_code = 500

class ConfigurationError(AppError):
    status_code = 500

class ErrorHandler:
    @staticmethod
    def to_response(error: Exception) -> Tuple[Dict[str, Any], int]:
        """Build the JSON error envelope for an exception"""
        if isinstance(error, AppError):
            if error.status_code >= 500:
                logger.error(f"{type(error).__name__}: {error.message}")
            else:
                logger.warning(f"{type(error).__name__}: {error.message}")
            return {'success': False, 'error': error.user_message}, error.status_code

        logger.error(f"Unhandled error: {str(error)}", exc_info=error)
        return {'success': False, 'error': str(error)}, 500

    @staticmethod
    def handle_webhook_error(error: Exception) -> Tuple[Dict[str, Any], int]:
        logger.error(f"WhatsApp callback error: {str(error)}", exc_info=error)
        return {'success': False, 'error': "Failed to process WhatsApp message"}, 500

    @staticmethod
    def handle_audio_error(error: Exception) -> Tuple[Dict[str, Any], int]:
        if isinstance(error, AppError) and error.status_code < 500:
            return ErrorHandler.to_response(error)
        logger.error(f"Audio processing error: {str(error)}", exc_info=error)
        message = error.message if isinstance(error, AppError) else str(error)
        return {'success': False, 'error': f"Failed to process audio: {message}"}, 500
