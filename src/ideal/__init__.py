"""
iDEAL Transaction Request

Builds, digests and renders the merchant-to-acquirer transaction request
(AcquirerTrxReq, protocol version 3.3.1) that starts an iDEAL payment.
"""

__version__ = "0.1.0"

from ideal.core.request import RequestMetadata, RequestValidationError
from ideal.core.transaction import TransactionRequest
from ideal.tx.builder import SignedMessage, TransactionRequestBuilder

__all__ = [
    "RequestMetadata",
    "RequestValidationError",
    "SignedMessage",
    "TransactionRequest",
    "TransactionRequestBuilder",
]
