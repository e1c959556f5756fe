"""Checkout round-trip records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .generation import GenerationConfig, RenderedImage
from .vehicle import VehicleAnalysis


@dataclass
class PendingPurchase:
    """Snapshot persisted before redirecting to the hosted checkout page."""

    correlation_id: str
    image: str
    analysis: VehicleAnalysis
    config: GenerationConfig
    preview: Optional[RenderedImage] = None
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "image": self.image,
            "analysis": self.analysis.to_payload(),
            "config": self.config.to_dict(),
            "preview": self.preview.to_dict() if self.preview else None,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingPurchase":
        preview = data.get("preview")
        return cls(
            correlation_id=str(data["correlation_id"]),
            image=str(data["image"]),
            analysis=VehicleAnalysis.from_payload(data["analysis"]),
            config=GenerationConfig.from_dict(data.get("config")),
            preview=RenderedImage.from_dict(preview) if preview else None,
            created_at=str(data.get("created_at") or ""),
        )


@dataclass
class SessionHandle:
    correlation_id: str
    store_key: str


@dataclass
class CheckoutSession:
    checkout_url: str
    session_id: str


@dataclass
class PaymentVerification:
    paid: bool
    session_id: str
    payment_status: str = ""
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def correlation_id(self) -> Optional[str]:
        return self.metadata.get("artSessionId") or None
