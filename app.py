from dotenv import load_dotenv
import logging
import sys

from api.config import get_settings
from api.dependencies import build_services
from api.routes import create_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True
)
logger = logging.getLogger(__name__)

load_dotenv()

settings = get_settings()
app = create_app(build_services(settings))

if __name__ == "__main__":
    # Log startup
    logger.info(f"Starting Flask server on port {settings.port}...")
    app.run(debug=True, port=settings.port)
