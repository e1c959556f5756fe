"""車輛照片分析服務。"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from ..common.models.vehicle import VehicleAnalysis
from ..common.services.errors import AnalysisError, GeminiServiceError
from ..common.services.logging import log_event
from .prompt_templates import ANALYZE_VEHICLE_PROMPT, ANALYZE_VEHICLE_SCHEMA


logger = logging.getLogger(__name__)


class VisionModel(Protocol):
    def analyze(self, *, image: str, prompt: str, schema: dict) -> str:
        ...


class AnalysisClient:
    """以固定的分析指令呼叫視覺模型，並驗證回傳的結構化結果。"""

    def __init__(self, model: VisionModel) -> None:
        self._model = model

    def analyze(self, image: str) -> VehicleAnalysis:
        if not image:
            raise AnalysisError("image is required")
        try:
            raw = self._model.analyze(image=image, prompt=ANALYZE_VEHICLE_PROMPT, schema=ANALYZE_VEHICLE_SCHEMA)
        except GeminiServiceError as exc:
            log_event("error", "analysis.failed", reason="provider", error=str(exc))
            raise AnalysisError(str(exc)) from exc

        try:
            analysis = VehicleAnalysis.from_payload(self._parse_response(raw))
        except ValueError as exc:
            log_event("error", "analysis.failed", reason="schema", error=str(exc))
            raise AnalysisError(str(exc)) from exc

        log_event(
            "info",
            "analysis.ok",
            vehicle=analysis.display_name,
            category=analysis.category.value,
            is_offroad=analysis.is_offroad,
            popular_mods=len(analysis.popular_mods),
        )
        return analysis

    @staticmethod
    def _parse_response(response: str) -> dict:
        """解析模型回應；容許被包在 markdown 代碼塊中的 JSON。"""

        text = (response or "").strip()
        if text.startswith("```"):
            lines = []
            in_json = False
            for line in text.split("\n"):
                if line.startswith("```"):
                    in_json = not in_json
                    continue
                if in_json:
                    lines.append(line)
            text = "\n".join(lines)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.debug("analysis response was not JSON: %.200s", text)
            raise ValueError(f"malformed analysis JSON: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise ValueError("analysis payload must be an object")
        return data
