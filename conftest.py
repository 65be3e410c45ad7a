"""Root pytest configuration."""

from pathlib import Path
import sys

from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)

# Cogs are imported as top-level "cogs.*", as the bot loads them
sys.path.append(str(_root / "discord_bot"))
