"""
Configuration for the Urban AI backend.
Values come from the environment (optionally a .env file) with sensible defaults.
"""

import os
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

KEYRING_SERVICE = 'urbanai_app'

API_BASE_URL = os.getenv('URBANAI_API_URL', 'https://api.decotwo.com')
ANALYSIS_API_URL = os.getenv('URBANAI_ANALYSIS_API_URL', 'http://localhost:8080')
MAP_API_URL = os.getenv('URBANAI_MAP_API_URL', API_BASE_URL)

REQUEST_TIMEOUT = float(os.getenv('URBANAI_REQUEST_TIMEOUT', 30))
CONSTRUCTION_CACHE_TTL = int(os.getenv('CONSTRUCTION_CACHE_TTL', 3600))  # seconds

SESSION_DIR = Path(os.getenv('URBANAI_SESSION_DIR', Path.home() / '.urbanai')).expanduser()

HOST = os.getenv('HOST', '127.0.0.1')
PORT = int(os.getenv('PORT', 5002))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def get_arcgis_api_key():
    """ArcGIS API key from the environment, or the OS keyring when stored there."""
    key = os.getenv('ARCGIS_API_KEY')
    if key and key != '<stored-in-keyring>':
        return key
    try:
        import keyring
        from keyring.errors import KeyringError
    except ImportError:
        return key if key != '<stored-in-keyring>' else None
    try:
        return keyring.get_password(KEYRING_SERVICE, 'ARCGIS_API_KEY')
    except KeyringError as e:
        logger.warning(f"Could not read ArcGIS key from keyring: {e}")
        return None


def configure_logging(level=None):
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
