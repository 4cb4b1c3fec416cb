from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import json
import logging

from thematic_coder.config import STATE_FILE

logger = logging.getLogger(__name__)


class JsonStateStore:
    """
    Key/value state kept in one local JSON file.

    load() never fails: a missing file, a missing key or unreadable JSON all
    give back the default. save() is best effort: write errors are logged,
    not raised.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else STATE_FILE

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: expected a JSON object.", self.path)
            return {}
        return data

    def load(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def save(self, key: str, value: Any) -> bool:
        return self.save_many({key: value})

    def save_many(self, values: Dict[str, Any]) -> bool:
        data = self._read_all()
        data.update(values)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save state to %s: %s", self.path, exc)
            return False
        return True
