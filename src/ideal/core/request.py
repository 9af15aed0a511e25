"""
Shared request metadata.

Every merchant-to-acquirer message carries the merchant identity and a
creation timestamp. These are kept in a small record that the concrete
messages embed.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


class RequestValidationError(ValueError):
    """
    Raised when a request field violates a business rule.

    Attributes:
        field: Name of the offending field
        message: Human readable description of the failed rule
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def is_blank(value: Optional[str]) -> bool:
    """Check for None, non-string, empty or whitespace-only values."""
    return not isinstance(value, str) or not value.strip()


# Characters outside the XML 1.0 Char production
_NON_XML_CHARS = re.compile(
    "[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def check_xml_text(field: str, value: str, label: str) -> None:
    """Reject text that an XML 1.0 document cannot hold."""
    if _NON_XML_CHARS.search(value):
        raise RequestValidationError(field, f"{label} contains characters not allowed in XML")


class ClockSource(ABC):
    """Provides the creation timestamp stamped on outgoing requests."""

    @abstractmethod
    def timestamp(self) -> str:
        """Return the current time in the protocol timestamp format."""
        pass


class SystemClock(ClockSource):
    """
    Wall clock in UTC.

    Produces timestamps like ``2025-01-01T12:00:00.000Z``.
    """

    def timestamp(self) -> str:
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class FixedClock(ClockSource):
    """Clock that always returns the same timestamp."""

    def __init__(self, value: str):
        self.value = value

    def timestamp(self) -> str:
        return self.value


@dataclass(frozen=True)
class RequestMetadata:
    """
    Fields common to every merchant request.

    Attributes:
        merchant_id: Merchant identifier assigned by the acquirer
        merchant_sub_id: Sub identifier, 0 unless the acquirer assigned one
        create_date_timestamp: Creation time in protocol format
    """

    merchant_id: str
    merchant_sub_id: int
    create_date_timestamp: str

    def __post_init__(self):
        if is_blank(self.merchant_id):
            raise RequestValidationError("merchant_id", "Merchant id is required")
        check_xml_text("merchant_id", self.merchant_id, "Merchant id")
        if isinstance(self.merchant_sub_id, bool) or not isinstance(self.merchant_sub_id, int):
            raise RequestValidationError("merchant_sub_id", "Merchant sub id must be an integer")
        if is_blank(self.create_date_timestamp):
            raise RequestValidationError(
                "create_date_timestamp", "Create date timestamp is required"
            )
        check_xml_text("create_date_timestamp", self.create_date_timestamp, "Create date timestamp")

    @classmethod
    def create(
        cls,
        merchant_id: str,
        sub_id: Optional[int] = None,
        clock: Optional[ClockSource] = None,
    ) -> "RequestMetadata":
        """
        Stamp new metadata with the current time.

        Args:
            merchant_id: Merchant identifier
            sub_id: Merchant sub id, stored as 0 when absent
            clock: Timestamp source (system clock if not provided)

        Returns:
            New RequestMetadata instance
        """
        clock = clock or SystemClock()
        return cls(
            merchant_id=merchant_id,
            merchant_sub_id=sub_id if sub_id is not None else 0,
            create_date_timestamp=clock.timestamp(),
        )

    @property
    def padded_merchant_id(self) -> str:
        """Merchant id left-padded with zeros to 9 characters."""
        return self.merchant_id.rjust(9, "0")
