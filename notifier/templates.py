"""
Message text lives in messages.yaml, grouped by notification kind.

    get_message("game_reminder", "discord", game_id="G7", minutes=10)
"""

from functools import lru_cache
from pathlib import Path

import yaml

MESSAGES_PATH = Path(__file__).parent / "messages.yaml"


@lru_cache(maxsize=1)
def load_templates() -> dict:
    with open(MESSAGES_PATH, encoding="utf-8") as f:
        return yaml.safe_load(f)


def get_message(message_type: str, variant: str, **context) -> str:
    """
    Render one template with str.format placeholders.

    Raises:
        KeyError: Unknown message type/variant, or a placeholder missing from context
    """
    try:
        template = load_templates()[message_type][variant]
    except KeyError:
        raise KeyError(f"No message template {message_type}.{variant}") from None
    return template.format(**context)
