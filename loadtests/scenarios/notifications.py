"""Notifications load test scenarios.

Journeys over the admin send endpoint, the in-app inbox and the preference
routes. The target server's user directory must contain the ids listed in
LOADTEST_USER_IDS for role/user fan-out to resolve anyone; guest sends need
no directory entries.
"""

import os
import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    bill_created_payload,
    low_stock_payload,
    push_token,
    quiet_hours,
    system_alert_payload,
)
from loadtests.helpers.response import describe_failure

KNOWN_USERS = [u for u in os.getenv("LOADTEST_USER_IDS", "").split(",") if u]
KNOWN_BRANCH = os.getenv("LOADTEST_BRANCH_ID", "branch-lt-1")


class GuestReceiptJourney(SequentialTaskSet):
    """Bill receipts to walk-in customers: Email + SMS, no directory lookups."""

    @task
    def send_receipt(self):
        with self.client.post(
            "/notifications/send",
            json=bill_created_payload(),
            catch_response=True,
            name="POST /notifications/send [receipt]",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Send failed: {resp.status_code}: {describe_failure(resp)}")
        self.interrupt()


class StaffInboxJourney(SequentialTaskSet):
    """Alert a user, then read their inbox and clear it."""

    def on_start(self):
        self.user_id = random.choice(KNOWN_USERS) if KNOWN_USERS else None

    @task
    def send_alert(self):
        if not self.user_id:
            self.interrupt()
        with self.client.post(
            "/notifications/send",
            json=system_alert_payload([self.user_id]),
            catch_response=True,
            name="POST /notifications/send [alert]",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Send failed: {resp.status_code}: {describe_failure(resp)}")
                self.interrupt()

    @task
    def list_inbox(self):
        self.client.get(f"/notifications/users/{self.user_id}?limit=20", name="GET /notifications/users/{id}")

    @task
    def unread_count(self):
        self.client.get(
            f"/notifications/users/{self.user_id}/unread-count",
            name="GET /notifications/users/{id}/unread-count",
        )

    @task
    def read_all(self):
        self.client.put(
            f"/notifications/users/{self.user_id}/read-all",
            name="PUT /notifications/users/{id}/read-all",
        )
        self.interrupt()


class PreferenceJourney(SequentialTaskSet):
    """Register a device, set quiet hours, restrict a type, read back."""

    def on_start(self):
        self.user_id = random.choice(KNOWN_USERS) if KNOWN_USERS else f"usr-pref-{random.randint(1, 10_000)}"

    @task
    def register_device(self):
        self.client.post(
            f"/notifications/preferences/{self.user_id}/push-tokens",
            json=push_token(),
            name="POST /notifications/preferences/{id}/push-tokens",
        )

    @task
    def set_quiet_hours(self):
        self.client.put(
            f"/notifications/preferences/{self.user_id}/quiet-hours",
            json=quiet_hours(),
            name="PUT /notifications/preferences/{id}/quiet-hours",
        )

    @task
    def restrict_daily_report(self):
        self.client.put(
            f"/notifications/preferences/{self.user_id}/types/DailyReport",
            json={"enabled": True, "channels": ["Email"]},
            name="PUT /notifications/preferences/{id}/types/{type}",
        )

    @task
    def read_back(self):
        self.client.get(
            f"/notifications/preferences/{self.user_id}",
            name="GET /notifications/preferences/{id}",
        )
        self.interrupt()


class BranchBroadcastJourney(SequentialTaskSet):
    """Low-stock alert fanned out to a branch's managers."""

    @task
    def broadcast(self):
        with self.client.post(
            "/notifications/send",
            json=low_stock_payload(KNOWN_BRANCH),
            catch_response=True,
            name="POST /notifications/send [branch]",
        ) as resp:
            # A branch with no managers in the directory is a 400, not an error here
            if resp.status_code not in (201, 400):
                resp.failure(f"Broadcast failed: {resp.status_code}: {describe_failure(resp)}")
        self.interrupt()


class NotificationsUser(HttpUser):
    """Mixed notifications traffic: receipts dominate, as at a busy till."""

    wait_time = between(0.5, 2.0)
    tasks = {
        GuestReceiptJourney: 6,
        StaffInboxJourney: 2,
        PreferenceJourney: 1,
        BranchBroadcastJourney: 1,
    }


class ReceiptFloodUser(HttpUser):
    """Stress: back-to-back receipts to measure enqueue throughput."""

    wait_time = between(0.0, 0.1)
    tasks = [GuestReceiptJourney]
