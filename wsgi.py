"""WSGI entry point for the read-only web surface."""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from models.database import Database
from web.app import create_app

logger = logging.getLogger("site360.wsgi")

config = load_config(os.environ.get("SITE360_CONFIG"))
setup_logging(config.get("logging", {}).get("level", "INFO"))

db = Database(config["database"]["path"])
db.connect()

app = create_app(config, {"db": db})
logger.info(f"Serving {config['database']['path']}")
