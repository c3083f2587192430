import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, SESSION_FILE_NAME, LOG_DIR, AUDIT_LOG_FILE_NAME

BASE_DIR = Path(os.environ.get("TRAINING_PORTAL_HOME") or Path.cwd()).resolve()
DATA_PATH = Path(os.environ.get("TRAINING_PORTAL_DATA_DIR") or BASE_DIR / DATA_DIR)
DB_PATH = DATA_PATH / DB_FILE_NAME
SESSION_PATH = DATA_PATH / SESSION_FILE_NAME
AUDIT_LOG_PATH = BASE_DIR / LOG_DIR / AUDIT_LOG_FILE_NAME
