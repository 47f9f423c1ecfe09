import asyncio
import logging
from google.api_core.exceptions import GoogleAPIError
from google.cloud import vision
from api.models import ImageAnnotation
from lib.error_handler import RemoteServiceError

logger = logging.getLogger(__name__)

ANNOTATION_FEATURES = [
    vision.Feature.Type.OBJECT_LOCALIZATION,
    vision.Feature.Type.LABEL_DETECTION,
    vision.Feature.Type.TEXT_DETECTION,
    vision.Feature.Type.LOGO_DETECTION,
]

class VisionService:
    def __init__(self, annotator_client=None):
        self.client = annotator_client or vision.ImageAnnotatorClient()

    async def annotate_image(self, content: bytes) -> ImageAnnotation:
        """Return label descriptions and the full detected text ('' when none)"""
        request = vision.AnnotateImageRequest(
            image=vision.Image(content=content),
            features=[vision.Feature(type_=feature) for feature in ANNOTATION_FEATURES]
        )

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                lambda: self.client.annotate_image(request, retry=None)
            )
        except GoogleAPIError as e:
            logger.error(f"Image annotation failed: {str(e)}")
            raise RemoteServiceError(f"Image annotation failed: {str(e)}")

        if result.error and result.error.message:
            raise RemoteServiceError(f"Image annotation failed: {result.error.message}")

        labels = [label.description for label in result.label_annotations]
        text = result.text_annotations[0].description if result.text_annotations else ''
        logger.info(f"Image annotated: {len(labels)} label(s), {len(text)} chars of text")
        return ImageAnnotation(labels=labels, text=text)
