"""
Prompt construction

The model is shown a reference DataHub dataset document and asked for a
new one shaped after the user's description.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

DATA_DIR = Path(__file__).parent / "data"
REFERENCE_SCHEMA_PATH = DATA_DIR / "schema.json"
PLACEHOLDER = "@@@REPLACE_ME@@@"

PROMPT_TEMPLATE = """Given a reference json schema like:

{reference}

Give me another schema taking into account:

{user_input}

If a schema name is provided, set schemaName to the name provided. If not, replace {placeholder} with {stamp}.
Do not explain anything. Return only the required JSON. Do not format the response as markdown."""


def load_reference_schema(path: Path = REFERENCE_SCHEMA_PATH) -> str:
    return path.read_text(encoding="utf-8")


def build_prompt(
    user_input: str, reference: Optional[str] = None, stamp: Optional[int] = None
) -> str:
    """
    Build the generation prompt.

    Args:
        user_input: Free-form description of the dataset(s) wanted.
        reference: Reference document; defaults to the bundled schema.json.
        stamp: Value used for unnamed schemas; defaults to the current epoch millis.
    """
    if reference is None:
        reference = load_reference_schema()
    if stamp is None:
        stamp = int(time.time() * 1000)
    return PROMPT_TEMPLATE.format(
        reference=reference, user_input=user_input, placeholder=PLACEHOLDER, stamp=stamp
    )


def strip_markdown_fence(text: str) -> str:
    """Remove a surrounding ```json fence some models add despite instructions."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()
