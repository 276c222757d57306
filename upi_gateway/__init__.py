"""UPI payment gateway demo: QR payment requests, UPI ID rotation, admin reconciliation."""
from pathlib import Path

from dotenv import load_dotenv

# Modules read their settings from the environment at import time.
load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

__version__ = "0.4.0"
