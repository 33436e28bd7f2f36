"""Business triggers: the POS events that notify customers and staff.

Each trigger builds a NotificationPayload from the business facts it is
handed and sends it through the dispatcher. The caller decides when to
fire them (after a bill is saved, on a scheduled job, ...).
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import structlog

from notifications.notification.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)
from notifications.notification.payload import NotificationPayload, PayloadMetadata, RecipientSpec

logger = structlog.get_logger(__name__)

BRANCH_MANAGER = "BRANCH_MANAGER"
TENANT_SUPER_ADMIN = "TENANT_SUPER_ADMIN"
MANAGER_ROLES = [BRANCH_MANAGER, TENANT_SUPER_ADMIN]

HIGH_VALUE_BILL_THRESHOLD = Decimal("10000")


@dataclass(frozen=True)
class Customer:
    name: str
    email: str | None = None
    mobile: str | None = None
    user_id: str | None = None
    wallet_balance: Decimal | None = None


@dataclass(frozen=True)
class Bill:
    bill_id: str
    bill_number: str
    total_amount: Decimal
    branch_id: str
    branch_name: str
    created_at: datetime
    sales_person_name: str | None = None


@dataclass(frozen=True)
class Branch:
    branch_id: str
    name: str


@dataclass(frozen=True)
class DailySales:
    branch: Branch
    day: date
    total_sales: Decimal
    total_bills: int


def _customer_recipients(customer):
    return RecipientSpec(user_id=customer.user_id, email=customer.email, mobile=customer.mobile)


async def after_bill_created(dispatcher, bill, customer):
    """Receipt to the customer; managers hear about high-value bills too."""
    metadata = PayloadMetadata(resource_type="Bill", resource_id=bill.bill_id, branch_id=bill.branch_id)

    notification_ids = await dispatcher.send(
        NotificationPayload(
            type=NotificationType.BILL_CREATED.value,
            channels=[NotificationChannel.EMAIL.value, NotificationChannel.SMS.value],
            priority=NotificationPriority.HIGH.value,
            recipients=_customer_recipients(customer),
            template_id="bill-created",
            template_data={
                "customer_name": customer.name,
                "bill_number": bill.bill_number,
                "amount": str(bill.total_amount),
                "store_name": bill.branch_name,
                "bill_date": bill.created_at.date().isoformat(),
            },
            metadata=metadata,
        )
    )

    if Decimal(bill.total_amount) > HIGH_VALUE_BILL_THRESHOLD:
        notification_ids += await dispatcher.send(
            NotificationPayload(
                type=NotificationType.BILL_CREATED.value,
                channels=[NotificationChannel.IN_APP.value, NotificationChannel.PUSH.value],
                priority=NotificationPriority.MEDIUM.value,
                recipients=RecipientSpec(branch_id=bill.branch_id, roles=MANAGER_ROLES),
                template_id="high-value-sale",
                template_data={
                    "bill_number": bill.bill_number,
                    "amount": str(bill.total_amount),
                    "sales_person": bill.sales_person_name or "",
                },
                metadata=metadata,
            )
        )

    return notification_ids


async def after_wallet_credit(dispatcher, customer, amount, bill_ref):
    return await dispatcher.send(
        NotificationPayload(
            type=NotificationType.WALLET_CREDITED.value,
            channels=[NotificationChannel.EMAIL.value, NotificationChannel.PUSH.value],
            priority=NotificationPriority.MEDIUM.value,
            recipients=_customer_recipients(customer),
            template_id="wallet-credited",
            template_data={
                "customer_name": customer.name,
                "amount": str(amount),
                "new_balance": str(customer.wallet_balance if customer.wallet_balance is not None else ""),
                "bill_ref": bill_ref,
            },
            metadata=PayloadMetadata(resource_type="Wallet", resource_id=bill_ref),
        )
    )


async def wallet_expiring(dispatcher, customer, amount, expiry_date):
    return await dispatcher.send(
        NotificationPayload(
            type=NotificationType.WALLET_EXPIRING.value,
            channels=[NotificationChannel.EMAIL.value, NotificationChannel.PUSH.value],
            priority=NotificationPriority.MEDIUM.value,
            recipients=_customer_recipients(customer),
            template_id="wallet-expiring",
            template_data={
                "customer_name": customer.name,
                "amount": str(amount),
                "expiry_date": expiry_date.isoformat(),
            },
        )
    )


async def low_stock_alert(dispatcher, product_name, current_stock, branch):
    return await dispatcher.send(
        NotificationPayload(
            type=NotificationType.LOW_STOCK_ALERT.value,
            channels=[NotificationChannel.EMAIL.value, NotificationChannel.IN_APP.value],
            priority=NotificationPriority.HIGH.value,
            recipients=RecipientSpec(branch_id=branch.branch_id, roles=MANAGER_ROLES),
            template_id="low-stock-alert",
            template_data={
                "product_name": product_name,
                "current_stock": current_stock,
                "branch_name": branch.name,
            },
            metadata=PayloadMetadata(resource_type="Product", branch_id=branch.branch_id),
        )
    )


async def _branch_managers(dispatcher, branch_id):
    # Recipient fields are unioned, so narrowing to one branch's managers happens here
    users = await dispatcher.resolver.directory.find_by_branch(branch_id)
    return [u.user_id for u in users if BRANCH_MANAGER in u.roles]


async def daily_sales_report(dispatcher, reports):
    """Send each branch's managers the day's totals. One payload per branch."""
    payloads = []
    for report in reports:
        manager_ids = await _branch_managers(dispatcher, report.branch.branch_id)
        if not manager_ids:
            logger.warning("No manager to receive daily report", branch_id=report.branch.branch_id)
            continue

        payloads.append(
            NotificationPayload(
                type=NotificationType.DAILY_REPORT.value,
                channels=[NotificationChannel.EMAIL.value],
                priority=NotificationPriority.LOW.value,
                recipients=RecipientSpec(user_ids=manager_ids),
                template_id="daily-sales-report",
                template_data={
                    "branch_name": report.branch.name,
                    "date": report.day.isoformat(),
                    "total_sales": str(report.total_sales),
                    "total_bills": report.total_bills,
                },
                metadata=PayloadMetadata(resource_type="Branch", branch_id=report.branch.branch_id),
            )
        )
    return await dispatcher.send_batch(payloads)
