from .stripe_checkout import (
    CheckoutLine,
    CheckoutRequest,
    CheckoutSession,
    PaymentProviderConfigurationError,
    PaymentProviderError,
    build_session_params,
    create_checkout_session,
    get_publishable_key,
)

__all__ = [
    "CheckoutLine",
    "CheckoutRequest",
    "CheckoutSession",
    "PaymentProviderConfigurationError",
    "PaymentProviderError",
    "build_session_params",
    "create_checkout_session",
    "get_publishable_key",
]
