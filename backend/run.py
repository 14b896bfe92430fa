"""Run the reminder with environment loaded from the project .env"""
import sys
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env", override=False)

if __name__ == "__main__":
    from reminder.cli import main

    sys.exit(main(sys.argv[1:] or ["start"]))
