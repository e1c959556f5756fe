"""以 JSON 檔保存的鍵值儲存庫（精靈狀態、待付款快照、已解鎖作品）。"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol


_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+(:[A-Za-z0-9_-]+)*$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def put(self, key: str, value: Dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...


class JsonFileStore:
    """每個鍵對應一個 JSON 檔，寫入時先寫暫存檔再取代。"""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("讀取 %s 失敗: %s", path.name, exc)
            return None
        return data if isinstance(data, dict) else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _path(self, key: str) -> Path:
        if not key or not _KEY_PATTERN.match(key):
            raise ValueError(f"invalid store key: {key!r}")
        return self._root / f"{key.replace(':', '__')}.json"
