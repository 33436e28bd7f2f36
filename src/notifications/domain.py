"""Notifications bounded context: multi-channel dispatch for the POS back office.

Turns business events (bill created, low stock, wallet credited) into
preference-aware messages delivered over Email, Push, SMS and In-App.
Outbound channels are drained by asynchronous workers with per-channel
retry policies; delivery status is tracked per channel on each
Notification record.
"""

from protean.domain import Domain

from notifications.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
notifications = Domain(name="notifications")
