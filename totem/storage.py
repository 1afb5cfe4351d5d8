import json
import logging
import os
import tempfile
from pathlib import Path

from totem.errors import IntegrityError

logger = logging.getLogger(__name__)


def save_snapshot(path, snapshot: dict):
    """Write the chain document atomically next to `path`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise

    logger.info("Chain saved to %s (%d blocks, %d pending)",
                path, len(snapshot.get("blocks", [])), len(snapshot.get("pending", [])))


def load_snapshot(path):
    """Read a chain document; None if there is nothing stored yet."""
    path = Path(path)
    if not path.exists():
        logger.info("No stored chain at %s", path)
        return None

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise IntegrityError(0, f"unreadable chain file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("blocks"), list):
        raise IntegrityError(0, f"chain file {path} has no block list")
    return data
