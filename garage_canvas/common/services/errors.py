"""Error taxonomy shared by the pipeline stages.

Each error carries a short, fixed ``user_message``; the original provider
text stays on the exception (``str(exc)``) for logs only.
"""

from __future__ import annotations

from typing import Optional


class GarageCanvasError(Exception):
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", *, user_message: Optional[str] = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message:
            self.user_message = user_message


class PreprocessError(GarageCanvasError):
    user_message = "We couldn't read that photo. Try a different photo."


class AnalysisError(GarageCanvasError):
    user_message = "Couldn't analyze that image. Try a clearer photo."


class RenderError(GarageCanvasError):
    user_message = "Generation failed. Please try again."

    def __init__(self, detail: str = "", *, stage: str = "", user_message: Optional[str] = None) -> None:
        super().__init__(detail, user_message=user_message)
        self.stage = stage


class CheckoutError(GarageCanvasError):
    user_message = "Checkout failed. Please try again."


class PaymentUnverifiedError(GarageCanvasError):
    user_message = "Payment verification failed. Please contact support if you were charged."


class UnlockInProgressError(GarageCanvasError):
    user_message = "Your art pack is still being prepared. This page will update shortly."


class GeminiServiceError(Exception):
    """Raised by the Gemini wrapper; callers translate it into a stage error."""
