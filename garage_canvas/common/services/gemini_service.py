import base64
import concurrent.futures
import logging
from typing import Any, List, Optional, Tuple

from google import genai
from google.genai import types as genai_types

from ..models.generation import RenderedImage
from .errors import GeminiServiceError
from .logging import log_event


class GeminiService:
    """
    Gemini API 整合服務：
    - 透過 google-genai Client 呼叫視覺分析（結構化 JSON）與影像生成
    - 分析可啟用 Google Search 工具，查詢車款常見改裝
    - 所有失敗一律轉為 GeminiServiceError，由呼叫端決定對使用者的訊息
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        analysis_model: str = "gemini-3-flash-preview",
        image_model: str = "gemini-2.5-flash-image",
        safety_level: str = "BLOCK_ONLY_HIGH",
        timeout_s: int = 120,
        analysis_search: bool = True,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key or None
        self.analysis_model = analysis_model
        self.image_model = image_model
        self.safety_level = safety_level
        self.timeout_s = timeout_s
        self.analysis_search = analysis_search
        self.client: Optional[genai.Client] = None
        self._init_client()

    @classmethod
    def from_settings(cls, settings) -> "GeminiService":
        return cls(
            settings.gemini_api_key,
            analysis_model=settings.gemini_analysis_model,
            image_model=settings.gemini_image_model,
            safety_level=settings.gemini_safety_level,
            timeout_s=settings.gemini_api_timeout,
            analysis_search=settings.gemini_analysis_search,
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    # Public API -----------------------------------------------------------------

    def analyze(self, *, image: str, prompt: str, schema: dict) -> str:
        """Send one JPEG (base64) plus instructions; return the raw JSON text."""

        contents = [
            genai_types.Content(
                role="user",
                parts=[
                    genai_types.Part.from_bytes(data=_b64decode(image), mime_type="image/jpeg"),
                    genai_types.Part.from_text(text=prompt),
                ],
            )
        ]
        tools = [genai_types.Tool(google_search=genai_types.GoogleSearch())] if self.analysis_search else None
        cfg = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            tools=tools,
            safety_settings=self._get_safety_settings(),
        )
        response = self._generate(self.analysis_model, contents, cfg)
        text = getattr(response, "text", None) or self._extract_text_from_sdk(response)
        if not text:
            raise GeminiServiceError(f"analysis returned no text ({self._check_safety_ratings(response) or 'empty response'})")
        return text

    def render(
        self,
        *,
        image: str,
        prompt: str,
        reference: Optional[RenderedImage] = None,
        aspect_ratio: Optional[str] = None,
    ) -> RenderedImage:
        """Render one image; with ``reference`` the prior output is sent first."""

        parts: List[Any] = []
        if reference is not None:
            parts.append(genai_types.Part.from_bytes(data=_b64decode(reference.data), mime_type=reference.mime_type))
        parts.append(genai_types.Part.from_bytes(data=_b64decode(image), mime_type="image/jpeg"))
        parts.append(genai_types.Part.from_text(text=prompt))
        contents = [genai_types.Content(role="user", parts=parts)]

        cfg = genai_types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            image_config=genai_types.ImageConfig(aspect_ratio=aspect_ratio) if aspect_ratio else None,
            safety_settings=self._get_safety_settings(),
        )
        response = self._generate(self.image_model, contents, cfg)
        extracted = self._extract_image_from_sdk(response)
        if extracted is None:
            raise GeminiServiceError(f"no image generated ({self._check_safety_ratings(response) or 'no inline data'})")
        data, mime_type = extracted
        return RenderedImage(data=base64.b64encode(data).decode("ascii"), mime_type=mime_type)

    # Internal helpers ------------------------------------------------------------

    def _init_client(self) -> None:
        if not self.api_key:
            self.logger.warning("GEMINI_API_KEY 未設定，AI 服務停用")
            self.client = None
            return
        self.client = genai.Client(api_key=self.api_key)
        self.logger.info("GeminiService 初始化完成，分析模型：%s 影像模型：%s", self.analysis_model, self.image_model)

    def _generate(self, model: str, contents: list, cfg: Any) -> Any:
        if self.client is None:
            raise GeminiServiceError("AI service not configured")
        # Call with timeout guard to avoid worker blocking
        log_event("debug", "gemini.request", model=model, timeout_s=self.timeout_s)
        ex = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            fut = ex.submit(lambda: self.client.models.generate_content(model=model, contents=contents, config=cfg))
            return fut.result(timeout=self.timeout_s)
        except concurrent.futures.TimeoutError as exc:
            raise GeminiServiceError(f"{model} timed out after {self.timeout_s}s") from exc
        except Exception as exc:
            raise GeminiServiceError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            ex.shutdown(wait=False, cancel_futures=True)

    def _get_safety_settings(self) -> List[Any]:
        threshold = getattr(genai_types.HarmBlockThreshold, self.safety_level, genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH)
        categories = (
            genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
            genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
            genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
            genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        )
        return [genai_types.SafetySetting(category=category, threshold=threshold) for category in categories]

    @staticmethod
    def _extract_text_from_sdk(response: Any) -> Optional[str]:
        """嘗試從 SDK 回應擷取文字內容。"""
        candidates = getattr(response, "candidates", None) or []
        texts = []
        for c in candidates:
            content = getattr(c, "content", None)
            if not content:
                continue
            for p in getattr(content, "parts", None) or []:
                txt = getattr(p, "text", None)
                if isinstance(txt, str) and txt.strip():
                    texts.append(txt.strip())
        return "\n".join(texts) if texts else None

    @staticmethod
    def _extract_image_from_sdk(response: Any) -> Optional[Tuple[bytes, str]]:
        candidates = getattr(response, "candidates", None) or []
        for candidate in candidates:
            content = getattr(candidate, "content", None)
            if not content:
                continue
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is None:
                    continue
                data = getattr(inline, "data", None)
                if isinstance(data, str):
                    data = base64.b64decode(data)
                if data:
                    return bytes(data), getattr(inline, "mime_type", None) or "image/png"
        return None

    @staticmethod
    def _check_safety_ratings(response: Any) -> Optional[str]:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            return f"blocked: {block_reason}"
        for candidate in getattr(response, "candidates", None) or []:
            reason = getattr(candidate, "finish_reason", None)
            if reason and str(reason) not in ("STOP", "FinishReason.STOP"):
                return f"finish_reason={reason}"
        return None


def _b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (ValueError, TypeError) as exc:
        raise GeminiServiceError("image payload is not valid base64") from exc
