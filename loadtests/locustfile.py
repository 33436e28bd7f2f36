"""Notifications Load Testing — Locust entry point.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Mixed notifications traffic only:
    locust -f loadtests/locustfile.py NotificationsUser

    # Enqueue throughput:
    locust -f loadtests/locustfile.py ReceiptFloodUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py NotificationsUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import describe_failure
from loadtests.scenarios.notifications import NotificationsUser, ReceiptFloodUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = describe_failure(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Print queue depths from /health when the test ends."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    try:
        resp = requests.get(f"{environment.host}/health", timeout=5)
        print(f"[LOADTEST] Pending delivery jobs: {resp.json().get('queues')}\n")
    except (requests.RequestException, ValueError) as e:
        print(f"[LOADTEST] Could not fetch queue depths: {e}\n")
