"""
Transaction request model.

A transaction request asks the acquirer to start a payment at the
consumer's bank. Instances are validated completely on construction, so a
TransactionRequest that exists is always ready to be digested and rendered.
"""

import math
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from ideal.core.request import (
    ClockSource,
    RequestMetadata,
    RequestValidationError,
    check_xml_text,
    is_blank,
)

CURRENCY = "EUR"
LANGUAGE = "nl"

DEFAULT_EXPIRATION_PERIOD = timedelta(minutes=30)
MIN_EXPIRATION_MINUTES = 1
MAX_EXPIRATION_MINUTES = 60

MAX_PURCHASE_ID_LENGTH = 16
MAX_DESCRIPTION_LENGTH = 32
MAX_ENTRANCE_CODE_LENGTH = 40

AmountLike = Union[Decimal, int, str]


def _to_decimal(value: AmountLike) -> Decimal:
    """Coerce an amount to Decimal without going through binary floats."""
    if isinstance(value, bool) or value is None:
        raise RequestValidationError("amount", "Amount must be a decimal value")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise RequestValidationError("amount", f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise RequestValidationError("amount", f"Invalid amount: {value!r}")
    return amount


@dataclass(frozen=True)
class TransactionRequest:
    """
    Transaction request (AcquirerTrxReq) for a single payment attempt.

    Use ``TransactionRequest.create`` to build one from plain values, and
    ``with_changes`` to derive a modified copy. Both paths run the same
    validation, and a failed rule leaves no instance behind.

    Attributes:
        metadata: Merchant identity and creation timestamp
        issuer_code: Identifier of the consumer's bank
        merchant_return_url: Url the consumer is sent back to after paying
        purchase_id: Merchant reference shown on the bank statement
        amount: Amount in euro
        expiration_period: Time the consumer has to complete the payment
        description: Description of the ordered product (no html tags!)
        entrance_code: Merchant code by which the consumer can be identified
    """

    metadata: RequestMetadata
    issuer_code: str
    merchant_return_url: str
    purchase_id: str
    amount: Decimal
    description: str
    entrance_code: str
    expiration_period: Optional[timedelta] = None

    def __post_init__(self):
        if not isinstance(self.issuer_code, str):
            raise RequestValidationError("issuer_code", "Issuer code must be a string")
        check_xml_text("issuer_code", self.issuer_code, "Issuer code")

        if is_blank(self.merchant_return_url):
            raise RequestValidationError("merchant_return_url", "Merchant url is required")
        object.__setattr__(self, "merchant_return_url", self.merchant_return_url.strip())
        check_xml_text("merchant_return_url", self.merchant_return_url, "Merchant url")

        if is_blank(self.purchase_id):
            raise RequestValidationError("purchase_id", "Purchase id is required")
        if len(self.purchase_id) > MAX_PURCHASE_ID_LENGTH:
            raise RequestValidationError(
                "purchase_id",
                f"Purchase id cannot contain more than {MAX_PURCHASE_ID_LENGTH} characters",
            )
        check_xml_text("purchase_id", self.purchase_id, "Purchase id")

        object.__setattr__(self, "amount", _to_decimal(self.amount))

        period = self.expiration_period
        if period is None:
            period = DEFAULT_EXPIRATION_PERIOD
        if not isinstance(period, timedelta):
            raise RequestValidationError(
                "expiration_period", "Expiration period must be a timedelta"
            )
        minutes = period.total_seconds() / 60
        if minutes < MIN_EXPIRATION_MINUTES:
            raise RequestValidationError(
                "expiration_period", "Minimum expiration period is one minute"
            )
        if minutes > MAX_EXPIRATION_MINUTES:
            raise RequestValidationError(
                "expiration_period", "Maximum expiration period is 1 hour"
            )
        object.__setattr__(self, "expiration_period", period)

        # Only the length is checked; html content is not rejected.
        if not isinstance(self.description, str):
            raise RequestValidationError("description", "Description must be a string")
        description = self.description.strip()
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise RequestValidationError(
                "description",
                f"Description cannot contain more than {MAX_DESCRIPTION_LENGTH} characters",
            )
        check_xml_text("description", description, "Description")
        object.__setattr__(self, "description", description)

        if is_blank(self.entrance_code):
            raise RequestValidationError("entrance_code", "Entrance code is required")
        if len(self.entrance_code) > MAX_ENTRANCE_CODE_LENGTH:
            raise RequestValidationError(
                "entrance_code",
                f"Entrance code cannot contain more than {MAX_ENTRANCE_CODE_LENGTH} characters",
            )
        check_xml_text("entrance_code", self.entrance_code, "Entrance code")

    @classmethod
    def create(
        cls,
        merchant_id: str,
        sub_id: Optional[int],
        issuer_code: str,
        merchant_return_url: str,
        purchase_id: str,
        amount: AmountLike,
        expiration_period: Optional[timedelta],
        description: str,
        entrance_code: str,
        clock: Optional[ClockSource] = None,
    ) -> "TransactionRequest":
        """
        Build a validated transaction request.

        Args:
            merchant_id: Merchant identifier assigned by the acquirer
            sub_id: Merchant sub id (0 if None)
            issuer_code: Identifier of the consumer's bank
            merchant_return_url: Return url after authorization
            purchase_id: Merchant reference, at most 16 characters
            amount: Amount in euro
            expiration_period: Between 1 and 60 minutes (30 if None)
            description: At most 32 characters after trimming
            entrance_code: At most 40 characters
            clock: Source of the creation timestamp

        Returns:
            New TransactionRequest

        Raises:
            RequestValidationError: If any field violates its rule
        """
        return cls(
            metadata=RequestMetadata.create(merchant_id, sub_id, clock),
            issuer_code=issuer_code,
            merchant_return_url=merchant_return_url,
            purchase_id=purchase_id,
            amount=amount,
            expiration_period=expiration_period,
            description=description,
            entrance_code=entrance_code,
        )

    def with_changes(self, **changes) -> "TransactionRequest":
        """
        Return a copy with some fields replaced.

        The copy is validated like a new request; this instance is never
        modified.
        """
        return replace(self, **changes)

    @property
    def merchant_id(self) -> str:
        return self.metadata.merchant_id

    @property
    def merchant_sub_id(self) -> int:
        return self.metadata.merchant_sub_id

    @property
    def create_date_timestamp(self) -> str:
        return self.metadata.create_date_timestamp

    @property
    def currency(self) -> str:
        return CURRENCY

    @property
    def language(self) -> str:
        return LANGUAGE

    @property
    def padded_issuer_code(self) -> str:
        """Issuer code left-padded with zeros to 4 characters."""
        return self.issuer_code.rjust(4, "0")

    @property
    def padded_merchant_id(self) -> str:
        return self.metadata.padded_merchant_id

    @property
    def amount_text(self) -> str:
        """Amount in plain notation, keeping its scale (10.00 stays "10.00")."""
        return format(self.amount, "f")

    @property
    def expiration_seconds(self) -> int:
        return math.floor(self.expiration_period.total_seconds())

    @property
    def expiration_text(self) -> str:
        """Expiration period as an ISO 8601 duration in whole seconds."""
        return f"PT{self.expiration_seconds}S"

    @property
    def message_digest(self) -> str:
        """
        Canonical string handed to the signature provider.

        Field order and padding widths must match what the acquirer
        recomputes when verifying the signature.
        """
        return (
            self.create_date_timestamp
            + self.padded_issuer_code
            + self.padded_merchant_id
            + str(self.merchant_sub_id)
            + self.merchant_return_url
            + self.purchase_id
            + self.amount_text
            + CURRENCY
            + LANGUAGE
            + self.description
            + self.entrance_code
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and serialization."""
        return {
            "create_date_timestamp": self.create_date_timestamp,
            "merchant_id": self.merchant_id,
            "merchant_sub_id": self.merchant_sub_id,
            "issuer_code": self.issuer_code,
            "merchant_return_url": self.merchant_return_url,
            "purchase_id": self.purchase_id,
            "amount": self.amount_text,
            "currency": CURRENCY,
            "expiration_period": self.expiration_text,
            "language": LANGUAGE,
            "description": self.description,
            "entrance_code": self.entrance_code,
        }
