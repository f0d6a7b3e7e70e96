"""
Prompt Templates
"""

import re
import logging
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent
PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def load_prompt_template(filename: str) -> str:
    """Load prompt template from file."""
    try:
        with open(PROMPTS_DIR / filename, 'r', encoding='utf-8') as f:
            return f.read()
    except Exception as e:
        logger.error(f"Failed to load prompt template {filename}: {e}")
        raise


def render_prompt(template: str, params: Dict[str, Any]) -> str:
    """Replace {key} placeholders in one pass. Unknown keys and other braces are left alone."""
    def substitute(match):
        key = match.group(1)
        return str(params[key]) if key in params else match.group(0)

    return PLACEHOLDER_PATTERN.sub(substitute, template)
