"""File I/O helpers for the local store and config files, plus the UTC clock."""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('academy.utils')


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def load_json(
    path: Path | str,
    schema: type[T] | None = None,
) -> Any | T:
    """
    Read a JSON document, optionally validating it into a pydantic model.

    Args:
        path: File to read
        schema: Model to validate the document against

    Returns:
        The decoded document, or a schema instance when schema is given

    Raises:
        FileNotFoundError: If the file is missing
        json.JSONDecodeError: If the file is not valid JSON
        ValueError: If the document does not match schema

    Example:
        from academy.schemas import AcademyConfig
        config = load_json('data/academy_config.json', schema=AcademyConfig)
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f'No JSON file at {path}')
        raise FileNotFoundError(f'File not found: {path}')

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        logger.error(f'{path} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})')
        raise

    if schema is None:
        return data

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        logger.error(f'{path} failed {schema.__name__} validation with {e.error_count()} error(s)')
        raise ValueError(f'{path} does not match {schema.__name__}:\n{e}') from e


def save_json(
    path: Path | str,
    data: Any,
    indent: int = 2,
    create_dirs: bool = True,
    atomic: bool = True,
) -> None:
    """
    Write data to a JSON file.

    With ``atomic`` set the text goes to a temporary file next to the target
    which then replaces it, so the old contents survive a failed write.

    Args:
        path: File to write
        data: JSON-serializable value or pydantic model (dumped with aliases)
        indent: Indentation (default: 2)
        create_dirs: Create missing parent directories (default: True)
        atomic: Replace through a temporary file (default: True)

    Raises:
        TypeError: If data is not JSON-serializable
        OSError: If the file cannot be written
    """
    path = Path(path)
    if isinstance(data, BaseModel):
        data = data.model_dump(mode='json', by_alias=True)

    try:
        text = json.dumps(data, indent=indent, ensure_ascii=False)
    except TypeError as e:
        logger.error(f'Refusing to write {path}: {e}')
        raise TypeError(f'Data is not JSON-serializable: {e}') from e

    try:
        if create_dirs:
            path.parent.mkdir(parents=True, exist_ok=True)
        if not atomic:
            path.write_text(text, encoding='utf-8')
            return

        fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', dir=path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error(f'Could not write {path}: {e}')
        raise
    logger.debug(f'Wrote {len(text)} bytes to {path}')


def load_json_safe(
    path: Path | str,
    default: Any = None,
    schema: type[T] | None = None,
) -> Any | T:
    """
    load_json that returns default for a missing, corrupt or invalid file.

    Example:
        data = load_json_safe('data/local_store.json', default={})
    """
    try:
        return load_json(path, schema=schema)
    except (FileNotFoundError, json.JSONDecodeError, ValueError):
        return default
