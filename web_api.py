from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

from identity.app import create_app
from identity.core.config import AppConfig
from identity.core.logging import setup_logging

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)

APP_ROOT = Path(__file__).resolve().parent

app = create_app(APP_CONFIG, app_root=APP_ROOT)
