"""HTTP surface of the newsletter publishing endpoints."""

from __future__ import annotations

import asyncio
from uuid import uuid4

from sqlalchemy import func, select

from apps.api.app.core.security import create_operator_token
from apps.api.app.models.issue import NewsletterIssueModel

PUBLISH_URL = "/v1/admin/newsletters"

PAYLOAD = {
    "title": "Newsletter title",
    "text_content": "Newsletter body as plain text",
    "html_content": "<p>Newsletter body as HTML</p>",
}


async def _issue_count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(NewsletterIssueModel))
        return int(result.scalar_one())


async def test_healthz(client):
    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "service": "api"}


async def test_publish_redirects_to_the_new_issue(client, auth_headers, add_subscriber):
    await add_subscriber("ursula@example.com")
    await add_subscriber("guido@example.com")

    response = await client.post(
        PUBLISH_URL, json=PAYLOAD, headers={**auth_headers, "Idempotency-Key": "abc123"}
    )

    assert response.status_code == 303
    issue_id = response.json()["issue_id"]
    assert response.headers["location"] == f"{PUBLISH_URL}/{issue_id}"

    detail = await client.get(response.headers["location"], headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["title"] == "Newsletter title"
    assert detail.json()["pending_deliveries"] == 2


async def test_replayed_publish_is_byte_identical(
    client, auth_headers, add_subscriber, session_factory
):
    await add_subscriber("ursula@example.com")
    await add_subscriber("guido@example.com")
    headers = {**auth_headers, "Idempotency-Key": "abc123"}

    first = await client.post(PUBLISH_URL, json=PAYLOAD, headers=headers)
    second = await client.post(PUBLISH_URL, json=PAYLOAD, headers=headers)

    assert second.status_code == first.status_code == 303
    assert second.content == first.content
    assert second.headers["location"] == first.headers["location"]
    assert await _issue_count(session_factory) == 1

    detail = await client.get(first.headers["location"], headers=auth_headers)
    assert detail.json()["pending_deliveries"] == 2


async def test_concurrent_submissions_share_one_response(
    client, auth_headers, add_subscriber, session_factory
):
    await add_subscriber("ursula@example.com")
    headers = {**auth_headers, "Idempotency-Key": "concurrent1"}

    first, second = await asyncio.gather(
        client.post(PUBLISH_URL, json=PAYLOAD, headers=headers),
        client.post(PUBLISH_URL, json=PAYLOAD, headers=headers),
    )

    assert first.status_code == second.status_code == 303
    assert first.content == second.content
    assert await _issue_count(session_factory) == 1


async def test_same_key_from_another_owner_publishes_again(
    client, auth_headers, session_factory
):
    other_owner = {"Authorization": f"Bearer {create_operator_token(uuid4())}"}

    first = await client.post(
        PUBLISH_URL, json=PAYLOAD, headers={**auth_headers, "Idempotency-Key": "shared"}
    )
    second = await client.post(
        PUBLISH_URL, json=PAYLOAD, headers={**other_owner, "Idempotency-Key": "shared"}
    )

    assert first.json()["issue_id"] != second.json()["issue_id"]
    assert await _issue_count(session_factory) == 2


async def test_publish_requires_authentication(client):
    response = await client.post(PUBLISH_URL, json=PAYLOAD, headers={"Idempotency-Key": "abc"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


async def test_publish_rejects_invalid_token(client):
    response = await client.post(
        PUBLISH_URL,
        json=PAYLOAD,
        headers={"Authorization": "Bearer not-a-jwt", "Idempotency-Key": "abc"},
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}


async def test_missing_idempotency_key_is_a_client_error(client, auth_headers, session_factory):
    response = await client.post(PUBLISH_URL, json=PAYLOAD, headers=auth_headers)

    assert response.status_code == 400
    assert "Idempotency-Key" in response.json()["detail"]
    assert await _issue_count(session_factory) == 0


async def test_malformed_idempotency_key_is_a_client_error(client, auth_headers, session_factory):
    response = await client.post(
        PUBLISH_URL, json=PAYLOAD, headers={**auth_headers, "Idempotency-Key": "not/valid"}
    )

    assert response.status_code == 400
    assert await _issue_count(session_factory) == 0


async def test_blank_title_is_a_client_error(client, auth_headers):
    response = await client.post(
        PUBLISH_URL,
        json={**PAYLOAD, "title": ""},
        headers={**auth_headers, "Idempotency-Key": "blank"},
    )

    assert response.status_code == 400


async def test_missing_field_fails_body_validation(client, auth_headers):
    response = await client.post(
        PUBLISH_URL,
        json={"title": "Only a title"},
        headers={**auth_headers, "Idempotency-Key": "partial"},
    )

    assert response.status_code == 422


async def test_unknown_issue_is_not_found(client, auth_headers):
    response = await client.get(f"{PUBLISH_URL}/{uuid4()}", headers=auth_headers)

    assert response.status_code == 404
