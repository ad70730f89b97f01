from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from apps.api.app.core.security import ALGORITHM, create_operator_token, decode_operator_token


def test_operator_token_round_trips_owner_id(settings):
    owner_id = uuid4()

    assert decode_operator_token(create_operator_token(owner_id)) == owner_id


def test_expired_operator_token_is_rejected(settings):
    token = create_operator_token(uuid4(), expires_delta=timedelta(seconds=-5))

    with pytest.raises(JWTError):
        decode_operator_token(token)


@pytest.mark.parametrize("claims", [{}, {"sub": "not-a-uuid"}, {"sub": 42}])
def test_token_without_owner_subject_is_rejected(settings, claims):
    claims = {**claims, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
    token = jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)

    with pytest.raises(JWTError):
        decode_operator_token(token)


def test_token_signed_with_another_key_is_rejected(settings):
    token = jwt.encode({"sub": str(uuid4())}, "some-other-key", algorithm=ALGORITHM)

    with pytest.raises(JWTError):
        decode_operator_token(token)


async def test_publish_rejects_token_without_owner_subject(client, settings):
    token = jwt.encode({"sub": "operator"}, settings.secret_key, algorithm=ALGORITHM)

    response = await client.post(
        "/v1/admin/newsletters",
        json={"title": "t", "text_content": "x", "html_content": "<p>x</p>"},
        headers={"Authorization": f"Bearer {token}", "Idempotency-Key": "badsub"},
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}
