"""GarageCanvas 應用設定模組。"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .common.config import SENSITIVE_KEYS


logger = logging.getLogger(__name__)


@dataclass
class GarageCanvasConfig:
    """封裝 Flask 應用與資料目錄的設定值。"""

    secret_key: str
    app_root: Path
    data_dir: Path

    @property
    def store_dir(self) -> Path:
        return self.data_dir / "store"

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def default_database_url(self) -> str:
        return f"sqlite:///{self.data_dir / 'garage_canvas.db'}"

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "GarageCanvasConfig":
        """從環境變數建構設定，並確保必要目錄存在。"""

        app_root = Path(__file__).resolve().parent
        data_dir = Path(data_dir or os.environ.get("GARAGE_CANVAS_DATA_DIR") or app_root.parent / "data")
        secret_key = os.environ.get("GARAGE_CANVAS_SECRET_KEY", "garage-canvas-dev")

        config = cls(secret_key=secret_key, app_root=app_root, data_dir=data_dir)
        config.data_dir.mkdir(parents=True, exist_ok=True)
        config.store_dir.mkdir(parents=True, exist_ok=True)

        # 確保 settings.json 存在；空值代表改用環境變數或內建預設值
        if not config.settings_file.exists():
            config.settings_file.write_text(
                json.dumps({key: "" for key in sorted(SENSITIVE_KEYS | {"STRIPE_PRICE_ID"})}, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            logger.info("已創建預設設定檔: %s", config.settings_file)

        return config
