"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the dispatcher's validation
(known type, known channels, template id present) and carry every
variable the referenced template needs.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_IN")

ROLES = ["BRANCH_MANAGER", "TENANT_SUPER_ADMIN", "CASHIER"]
PRIORITIES = ["Critical", "High", "Medium", "Low"]


def user_id() -> str:
    """Load-test user ids like 'usr-lt-a1b2c3d4'. The directory must know them."""
    return f"usr-lt-{uuid.uuid4().hex[:8]}"


def guest_contact() -> dict:
    return {"email": fake.email(), "mobile": f"+91{random.randint(7000000000, 9999999999)}"}


def bill_created_payload() -> dict:
    return {
        "type": "BillCreated",
        "channels": ["Email", "SMS"],
        "priority": "High",
        "recipients": guest_contact(),
        "template_id": "bill-created",
        "template_data": {
            "customer_name": fake.name(),
            "bill_number": f"BILL-{random.randint(100000, 999999)}",
            "amount": f"{random.uniform(100, 20000):.2f}",
            "store_name": fake.company(),
            "bill_date": fake.date_this_month().isoformat(),
        },
    }


def system_alert_payload(recipient_ids) -> dict:
    return {
        "type": "SystemAlert",
        "channels": ["InApp", "Push", "Email"],
        "priority": random.choice(PRIORITIES),
        "recipients": {"user_ids": list(recipient_ids)},
        "template_id": "system-alert",
        "template_data": {"title": fake.catch_phrase(), "message": fake.sentence(nb_words=12)},
    }


def low_stock_payload(branch_id) -> dict:
    return {
        "type": "LowStockAlert",
        "channels": ["Email", "InApp"],
        "priority": "High",
        "recipients": {"branch_id": branch_id, "roles": ["BRANCH_MANAGER"]},
        "template_id": "low-stock-alert",
        "template_data": {
            "product_name": fake.word().title(),
            "current_stock": random.randint(0, 5),
            "branch_name": fake.city(),
        },
    }


def quiet_hours() -> dict:
    start = random.randint(20, 23)
    end = random.randint(6, 9)
    return {"enabled": True, "start": f"{start:02d}:00", "end": f"{end:02d}:00", "timezone": "Asia/Kolkata"}


def push_token() -> dict:
    return {
        "token": uuid.uuid4().hex + uuid.uuid4().hex,
        "platform": random.choice(["ios", "android", "web"]),
        "device_id": f"dev-{uuid.uuid4().hex[:6]}",
    }
