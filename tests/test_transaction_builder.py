"""
Test suite for the transaction request builder.

Tests request construction with configured defaults and the signing step
of document assembly.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

from lxml import etree

from ideal.core.request import FixedClock, RequestValidationError
from ideal.tx.builder import (
    MessageBuildError,
    SignedMessage,
    TransactionRequestBuilder,
    qname,
)
from ideal.tx.signer import SignatureProvider

from conftest import SAMPLE_TIMESTAMP

GOLDEN_DIGEST = "2025010112000000011234567890https://x/PID110.00EURnldescEC1"


class RecordingSignatureProvider(SignatureProvider):
    """Signature provider that remembers what it signed."""

    def __init__(self):
        self.digests = []

    def sign(self, digest: str) -> str:
        self.digests.append(digest)
        return "signed:" + digest[:8]


def build_sample(builder):
    return builder.build(
        issuer_code="1",
        merchant_return_url="https://x/",
        purchase_id="PID1",
        amount=Decimal("10.00"),
        description="desc",
        entrance_code="EC1",
    )


# ============================================================================
# Test Request Construction
# ============================================================================

class TestBuild:
    """Tests for building requests with configured defaults."""

    def test_uses_configured_merchant(self, test_config, fixed_clock):
        builder = TransactionRequestBuilder(config=test_config, clock=fixed_clock)

        request = build_sample(builder)

        assert request.merchant_id == "123456789"
        assert request.merchant_sub_id == 0
        assert request.create_date_timestamp == SAMPLE_TIMESTAMP
        assert request.message_digest == GOLDEN_DIGEST

    def test_explicit_merchant_overrides_config(self, test_config, fixed_clock):
        builder = TransactionRequestBuilder(config=test_config, clock=fixed_clock)

        request = builder.build(
            issuer_code="1",
            merchant_return_url="https://x/",
            purchase_id="PID1",
            amount="5",
            description="",
            entrance_code="EC1",
            merchant_id="42",
            sub_id=2,
        )

        assert request.padded_merchant_id == "000000042"
        assert request.merchant_sub_id == 2

    def test_configured_default_expiration(self, test_config, fixed_clock):
        config = test_config.model_copy(update={"default_expiration_minutes": 10})
        builder = TransactionRequestBuilder(config=config, clock=fixed_clock)

        request = build_sample(builder)

        assert request.expiration_text == "PT600S"

    def test_missing_merchant_fails(self, test_config, fixed_clock):
        config = test_config.model_copy(update={"merchant_id": None})
        builder = TransactionRequestBuilder(config=config, clock=fixed_clock)

        with pytest.raises(RequestValidationError, match="Merchant id is required"):
            build_sample(builder)

    def test_validation_errors_propagate(self, test_config, fixed_clock):
        builder = TransactionRequestBuilder(config=test_config, clock=fixed_clock)

        with pytest.raises(RequestValidationError, match="Maximum expiration period"):
            builder.build(
                issuer_code="1",
                merchant_return_url="https://x/",
                purchase_id="PID1",
                amount=Decimal("10.00"),
                description="desc",
                entrance_code="EC1",
                expiration_period=timedelta(minutes=61),
            )


# ============================================================================
# Test Document Assembly
# ============================================================================

class TestToXml:
    """Tests for rendering with signing."""

    def test_provider_receives_digest(self, test_config, sample_request):
        provider = RecordingSignatureProvider()
        builder = TransactionRequestBuilder(signer=provider, config=test_config)

        message = builder.to_xml(sample_request)

        assert isinstance(message, SignedMessage)
        assert provider.digests == [GOLDEN_DIGEST]
        assert message.digest == GOLDEN_DIGEST
        assert message.signature == "signed:20250101"
        assert message.request is sample_request

    def test_plain_function_provider(self, test_config, sample_request):
        signer = MagicMock(return_value="sig")
        builder = TransactionRequestBuilder(config=test_config)

        message = builder.to_xml(sample_request, signer)

        signer.assert_called_once_with(GOLDEN_DIGEST)
        assert message.signature == "sig"

    def test_argument_overrides_builder_signer(self, test_config, sample_request):
        default = RecordingSignatureProvider()
        override = RecordingSignatureProvider()
        builder = TransactionRequestBuilder(signer=default, config=test_config)

        builder.to_xml(sample_request, override)

        assert default.digests == []
        assert override.digests == [GOLDEN_DIGEST]

    def test_document_rendered(self, test_config, sample_request):
        builder = TransactionRequestBuilder(signer=lambda d: "sig", config=test_config)

        message = builder.to_xml(sample_request)
        root = etree.fromstring(message.to_bytes())

        assert root.tag == qname("AcquirerTrxReq")
        assert message.to_string().startswith("<?xml")

    def test_fails_without_provider(self, test_config, sample_request):
        builder = TransactionRequestBuilder(config=test_config)

        with pytest.raises(MessageBuildError, match="No signature provider"):
            builder.to_xml(sample_request)

    def test_provider_failure_wrapped(self, test_config, sample_request):
        def broken(digest):
            raise ConnectionError("signing service unavailable")

        builder = TransactionRequestBuilder(signer=broken, config=test_config)

        with pytest.raises(MessageBuildError, match="signing service unavailable") as exc:
            builder.to_xml(sample_request)

        assert isinstance(exc.value.__cause__, ConnectionError)

    def test_rejects_non_callable_signer(self, test_config):
        with pytest.raises(TypeError, match="Not a signature provider"):
            TransactionRequestBuilder(signer="key.pem", config=test_config)

    def test_rsa_signature_verifies(self, test_config, sample_request, test_signer):
        builder = TransactionRequestBuilder(signer=test_signer, config=test_config)

        message = builder.to_xml(sample_request)

        assert test_signer.verify(message.digest, message.signature)

    def test_each_request_signed_separately(self, test_config):
        provider = RecordingSignatureProvider()
        builder = TransactionRequestBuilder(
            signer=provider,
            config=test_config,
            clock=FixedClock(SAMPLE_TIMESTAMP),
        )

        first = build_sample(builder)
        second = first.with_changes(purchase_id="PID2")
        builder.to_xml(first)
        builder.to_xml(second)

        assert provider.digests == [first.message_digest, second.message_digest]
        assert provider.digests[0] != provider.digests[1]

    def test_render_failure_skips_signing(self, test_config, sample_request, monkeypatch):
        provider = RecordingSignatureProvider()
        builder = TransactionRequestBuilder(signer=provider, config=test_config)

        def broken_render(request):
            raise ValueError("All strings must be XML compatible")

        monkeypatch.setattr(builder, "render", broken_render)

        with pytest.raises(ValueError, match="XML compatible"):
            builder.to_xml(sample_request)

        assert provider.digests == []

    def test_signed_message_is_frozen(self, test_config, sample_request):
        builder = TransactionRequestBuilder(signer=lambda d: "sig", config=test_config)

        message = builder.to_xml(sample_request)

        with pytest.raises(AttributeError):
            message.signature = "forged"

        assert message.signature == "sig"
