"""Channel providers: the gateway-facing side of delivery.

Providers are injected into the delivery runtime per channel. The fakes in
this package record what they send and can be told to fail; real gateway
adapters implement the same ChannelProvider contract.
"""

from notifications.channel.base import ChannelProvider, DeliveryResult
from notifications.channel.errors import (
    DeliveryError,
    MissingContactError,
    NonRetryableDeliveryError,
    TemplateNotFoundError,
    TemplateRenderError,
)

__all__ = [
    "ChannelProvider",
    "DeliveryResult",
    "DeliveryError",
    "MissingContactError",
    "NonRetryableDeliveryError",
    "TemplateNotFoundError",
    "TemplateRenderError",
]
