"""
Shopfront Offer Engine - Errors
=================================
Error types for catalog loading, cart normalization and telemetry.

Evaluation itself does not raise for business outcomes: ineligible,
conflicting or capped offers are reported in the EvaluationResult.
"""


class OfferEngineError(Exception):
    """Base error for offer engine operations."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class OfferDefinitionError(OfferEngineError):
    """Offer row is malformed (missing or invalid discount parameters)."""

    def __init__(self, offer_id: str, message: str):
        self.offer_id = offer_id
        super().__init__(f"Offer '{offer_id}' is malformed: {message}")


class CartNormalizationError(OfferEngineError):
    """External cart line cannot be translated into the engine's cart shape."""

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(f"Cart line {index} is invalid: {message}")


class CatalogFetchError(OfferEngineError):
    """Offer catalog or experiment definitions could not be loaded."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(
            f"Failed to load {source}: {message}", retryable=True,
        )


class TelemetryDeliveryError(OfferEngineError):
    """Exposure/conversion rows could not be written to the event store."""

    def __init__(self, sink: str, message: str):
        self.sink = sink
        super().__init__(f"Telemetry sink '{sink}' failed: {message}", retryable=True)
