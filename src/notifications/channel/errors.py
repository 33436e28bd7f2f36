"""Errors raised by channel providers.

Anything not derived from NonRetryableDeliveryError (including timeouts and
transport exceptions) is treated as transient and retried per policy.
"""


class DeliveryError(Exception):
    """A delivery attempt failed."""


class NonRetryableDeliveryError(DeliveryError):
    """A failure that another attempt cannot fix."""


class TemplateNotFoundError(NonRetryableDeliveryError):
    def __init__(self, template_id, channel=None):
        self.template_id = template_id
        self.channel = channel
        where = f" for channel {channel}" if channel else ""
        super().__init__(f"Template {template_id} not found{where}")


class TemplateRenderError(NonRetryableDeliveryError):
    """Template data is missing a variable the template needs."""


class MissingContactError(NonRetryableDeliveryError):
    """The recipient has no address for the channel (email, mobile or push token)."""
