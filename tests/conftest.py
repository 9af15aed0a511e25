"""
Pytest configuration and shared fixtures for the test suite.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from ideal.config import IdealConfig
from ideal.core.request import FixedClock
from ideal.core.transaction import TransactionRequest


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> IdealConfig:
    """Create a test configuration."""
    return IdealConfig(
        merchant_id="123456789",
        merchant_sub_id=0,
        private_key_path=None,
        private_key_pem=None,
        default_expiration_minutes=30,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data
# ============================================================================

SAMPLE_TIMESTAMP = "20250101120000"

SAMPLE_FIELDS = dict(
    merchant_id="123456789",
    sub_id=0,
    issuer_code="1",
    merchant_return_url="https://x/",
    purchase_id="PID1",
    amount=Decimal("10.00"),
    expiration_period=None,
    description="desc",
    entrance_code="EC1",
)


def make_request(**overrides) -> TransactionRequest:
    """Create a request from the sample fields with some of them replaced."""
    fields = dict(SAMPLE_FIELDS)
    fields.update(overrides)
    fields.setdefault("clock", FixedClock(SAMPLE_TIMESTAMP))
    return TransactionRequest.create(**fields)


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(SAMPLE_TIMESTAMP)


@pytest.fixture
def sample_request() -> TransactionRequest:
    """Create the sample transaction request."""
    return make_request()


@pytest.fixture
def full_request() -> TransactionRequest:
    """Create a request with every optional field set."""
    return make_request(
        merchant_id="123456",
        sub_id=3,
        issuer_code="21",
        merchant_return_url="  https://shop.example/return  ",
        purchase_id="ORDER-0000000042",
        amount=Decimal("1234.56"),
        expiration_period=timedelta(minutes=15),
        description="  Two tickets  ",
        entrance_code="session-7f3a",
    )


# ============================================================================
# Test Signer
# ============================================================================

@pytest.fixture(scope="session")
def test_signer():
    """Create a test signer with a random key."""
    from ideal.tx.signer import generate_test_key
    return generate_test_key()
