"""
Property-based tests for idempotency key and subscriber email validation.

Property: a key is accepted exactly when it has 1-50 ASCII letters or digits,
and accepted keys keep their value unchanged.
"""

import string

import pytest
from hypothesis import given, settings, strategies as st

from apps.api.app.domain.deliveries import parse_subscriber_email
from apps.api.app.domain.errors import ErrorKind, NewsletterError
from apps.api.app.domain.idempotency import IDEMPOTENCY_KEY_MAX_LENGTH, IdempotencyKey

ALPHANUMERIC = string.ascii_letters + string.digits

valid_key_strategy = st.text(alphabet=ALPHANUMERIC, min_size=1, max_size=IDEMPOTENCY_KEY_MAX_LENGTH)

too_long_key_strategy = st.text(
    alphabet=ALPHANUMERIC,
    min_size=IDEMPOTENCY_KEY_MAX_LENGTH + 1,
    max_size=IDEMPOTENCY_KEY_MAX_LENGTH + 20,
)

# Valid prefix with at least one character outside [A-Za-z0-9]
symbol_key_strategy = st.tuples(
    st.text(alphabet=ALPHANUMERIC, max_size=20),
    st.characters().filter(lambda ch: ch not in ALPHANUMERIC),
    st.text(alphabet=ALPHANUMERIC, max_size=20),
).map("".join)


@settings(max_examples=100)
@given(raw=valid_key_strategy)
def test_alphanumeric_keys_up_to_the_limit_are_accepted(raw: str):
    key = IdempotencyKey(raw)
    assert key == raw
    assert isinstance(key, str)


@settings(max_examples=50)
@given(raw=too_long_key_strategy)
def test_over_length_keys_are_rejected(raw: str):
    with pytest.raises(NewsletterError) as excinfo:
        IdempotencyKey(raw)
    assert excinfo.value.kind is ErrorKind.VALIDATION


@settings(max_examples=100)
@given(raw=symbol_key_strategy)
def test_keys_with_symbols_are_rejected(raw: str):
    with pytest.raises(NewsletterError) as excinfo:
        IdempotencyKey(raw)
    assert excinfo.value.kind is ErrorKind.VALIDATION


def test_empty_key_is_rejected():
    with pytest.raises(NewsletterError) as excinfo:
        IdempotencyKey("")
    assert excinfo.value.kind is ErrorKind.VALIDATION


@pytest.mark.parametrize("raw", ["", "ursuladomain.com", "@domain.com", "ursula@", "a b@example.com"])
def test_malformed_subscriber_emails_are_rejected(raw: str):
    with pytest.raises(NewsletterError) as excinfo:
        parse_subscriber_email(raw)
    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert excinfo.value.cause is not None


def test_subscriber_email_is_normalised():
    assert parse_subscriber_email("ursula@Example.COM") == "ursula@example.com"
