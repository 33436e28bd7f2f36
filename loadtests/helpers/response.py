"""Failure descriptions for the Notifications API, used in Locust reports."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response

MAX_DETAIL = 300


def _field_errors(detail: list[dict]) -> str:
    # FastAPI request validation: [{"loc": ["body", "channels"], "msg": "..."}]
    rendered = []
    for item in detail:
        field = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        rendered.append(f"{field}: {item.get('msg')}" if field else str(item.get("msg")))
    return "; ".join(rendered)


def describe_failure(response: Response) -> str:
    """One-line summary of why a request failed."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or "(no body)")[:MAX_DETAIL]

    if isinstance(body.get("detail"), list):
        return _field_errors(body["detail"])

    # Domain errors surface as {"error": "..."} or {"error": {"field": [...]}}
    error = body.get("error", body)
    if isinstance(error, dict):
        error = "; ".join(f"{field}: {messages}" for field, messages in error.items())
    return str(error)[:MAX_DETAIL]
