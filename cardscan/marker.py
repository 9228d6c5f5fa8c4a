"""Durable record of the last synchronized board id (a one-line text file)."""
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class BoardMarker:
    """Reads and overwrites the last-synchronized board id."""

    def __init__(self, path: str):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        """Return the stored board id, or None if no board has been synchronized."""
        if not self.path.exists():
            return None
        value = self.path.read_text(encoding="utf-8").strip()
        return value or None

    def write(self, board_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(board_id, encoding="utf-8")
        tmp.replace(self.path)
        logger.info(f"Last synchronized board set to {board_id}")
