"""Atomic file writes for trace files."""

import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str, max_retries: int = 3) -> None:
    """
    Write ``content`` to ``file_path`` via a sibling temp file and ``os.replace``.

    Readers of a trace directory see either the previous file or the complete
    new one. Each call gets its own temp file, so concurrent runs in one
    process never collide.

    Raises:
        OSError: If the write still fails after ``max_retries`` attempts
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(1, max_retries + 1):
        fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent)
        try:
            with os.fdopen(fd, "w") as tmp:
                tmp.write(content)
            os.replace(tmp_name, file_path)
            return
        except OSError as e:
            if attempt == max_retries:
                logger.error(f"Failed to write {file_path} after {max_retries} attempts: {e}")
                raise
            logger.warning(f"Failed to write {file_path} (attempt {attempt}/{max_retries}): {e}")
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)


def atomic_write_model(file_path: Path, model: BaseModel, indent: int = 2) -> None:
    """Atomically write a pydantic model as camelCase JSON."""
    atomic_write_text(file_path, model.model_dump_json(indent=indent, by_alias=True))
