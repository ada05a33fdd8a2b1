"""JSON file helpers for bundled datasets and configuration."""

import json
import logging
import math
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('warroom.utils')

DATA_DIR = Path(__file__).parent.parent / 'data'


def data_path(name: str | Path) -> Path:
    """
    Resolve a bundled data file name.

    Absolute paths are returned unchanged; relative names resolve against
    the repository ``data/`` directory.
    """
    path = Path(name)
    if path.is_absolute():
        return path
    return DATA_DIR / path


def load_json(
    path: Path | str,
    schema: type[T] | None = None,
) -> Any | T:
    """
    Load a JSON file, optionally validating it against a pydantic schema.

    Args:
        path: Path to JSON file
        schema: Optional pydantic model to validate against

    Returns:
        Parsed JSON, or a validated model instance when ``schema`` is given

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the JSON is malformed
        ValueError: If schema validation fails

    Example:
        from warroom.schemas import IdentityDataset
        dataset = load_json(data_path('player_ids.json'), schema=IdentityDataset)
    """
    path = Path(path)

    logger.debug(f'Loading JSON from: {path}')

    if not path.exists():
        logger.error(f'File not found: {path}')
        raise FileNotFoundError(f'File not found: {path}')

    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f'Invalid JSON in {path}: {e.msg} at position {e.pos}')
        raise json.JSONDecodeError(f'Invalid JSON in {path}: {e.msg}', e.doc, e.pos) from e

    if schema is None:
        return data

    try:
        validated = schema.model_validate(data)
    except ValidationError as e:
        logger.error(f'Schema validation failed for {path}: {e}')
        raise ValueError(f'Schema validation failed for {path}:\n{e}') from e

    logger.debug(f'Schema validation passed for: {path}')
    return validated


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a payload value to float.

    Platforms send nulls, numeric strings and the occasional NaN; all of
    those collapse to ``default`` rather than raising.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
