"""Payment processor access."""

from .stripe_client import PaymentProcessor, PaymentProcessorError, StripeClient

__all__ = ["PaymentProcessor", "PaymentProcessorError", "StripeClient"]
