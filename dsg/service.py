"""
Generation workflow

Glue shared by the CLI commands: ask the model for a schema, remember the
answer in the history store, and publish it to the catalog.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from dsg.datahub.client import CatalogClient
from dsg.datahub.models import DATASET, DatasetSummary, summarize_response
from dsg.errors import DecodeError, GenerationError, StorageError
from dsg.history import HistoryStore
from dsg.llm.base import LLMProvider
from dsg.prompting import build_prompt, strip_markdown_fence

logger = logging.getLogger("dsg.service")


class GenerationResult(BaseModel):
    user_input: str
    prompt: str
    response: str
    summary: DatasetSummary = Field(default_factory=DatasetSummary)
    entity_count: int = 0


class HistoryFile(BaseModel):
    """A history entry exported with ``history show --json``.

    Accepts both lower-case keys and the capitalized keys of older exports.
    """

    id: Optional[int] = Field(default=None, validation_alias=AliasChoices("id", "ID"))
    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "Prompt"))
    response: str = Field(validation_alias=AliasChoices("response", "Response"))


def generate_schema(
    provider: LLMProvider, user_input: str, reference: Optional[str] = None
) -> GenerationResult:
    """
    Ask the model for a dataset document matching the description.

    Raises:
        GenerationError: The model failed or returned an empty answer.
        DecodeError: The answer is not valid JSON.
    """
    if not user_input.strip():
        raise GenerationError("the dataset description is empty")

    prompt = build_prompt(user_input, reference=reference)
    answer = provider.generate(prompt)
    response = strip_markdown_fence(answer.content)

    try:
        data = json.loads(response)
    except json.JSONDecodeError as e:
        raise DecodeError(f"error parsing JSON response: {e}") from e

    count = len(data) if isinstance(data, list) else 1
    return GenerationResult(
        user_input=user_input,
        prompt=prompt,
        response=response,
        summary=summarize_response(response),
        entity_count=count,
    )


def record_generation(store: HistoryStore, result: GenerationResult) -> Optional[int]:
    """Save a generation; storage failures are logged, not raised."""
    try:
        entry_id = store.save(
            result.user_input,
            result.response,
            schema_name=result.summary.schema_name,
            schema_urn=result.summary.schema_urn,
            dataset_name=result.summary.dataset_name,
        )
    except StorageError as e:
        logger.warning("Failed to save to history: %s", e)
        return None
    logger.debug("Response saved to history with ID: %d", entry_id)
    return entry_id


def open_history(data_dir: Path) -> Optional[HistoryStore]:
    """Open the history store, or return None (with a warning) when it is unusable."""
    try:
        return HistoryStore(data_dir)
    except StorageError as e:
        logger.warning("Failed to initialize history database: %s", e)
        return None


def post_datasets(client: CatalogClient, response: str) -> int:
    """Post a generated (or stored) response; a single object counts as one dataset."""
    return client.post_entities(DATASET, response, allow_single=True)


def load_history_file(path: Path) -> HistoryFile:
    """
    Read an exported history entry.

    Raises:
        DecodeError: The file is not a JSON history entry.
    """
    try:
        return HistoryFile.model_validate_json(path.read_bytes())
    except ValidationError as e:
        raise DecodeError(f"error decoding history file {path}: {e}") from e
