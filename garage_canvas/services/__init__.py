"""GarageCanvas 應用服務模組入口。"""

from .analysis_client import AnalysisClient
from .art_session_service import ArtSessionService
from .checkout_gate import CheckoutGate
from .generation_pipeline import GenerationPipeline
from .image_preprocessor import ImagePreprocessor, PillowImageDecoder
from .pending_store import JsonFileStore, KeyValueStore

__all__ = [
    "AnalysisClient",
    "ArtSessionService",
    "CheckoutGate",
    "GenerationPipeline",
    "ImagePreprocessor",
    "PillowImageDecoder",
    "JsonFileStore",
    "KeyValueStore",
]
