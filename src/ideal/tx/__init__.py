"""
Transaction module.

Handles rendering, signing and parsing of transaction request messages.
"""

from ideal.tx.builder import MessageBuildError, SignedMessage, TransactionRequestBuilder
from ideal.tx.parser import MessageParseError, parse_transaction_request
from ideal.tx.signer import (
    CallableSignatureProvider,
    RsaSignatureProvider,
    SignatureProvider,
)

__all__ = [
    "CallableSignatureProvider",
    "MessageBuildError",
    "MessageParseError",
    "RsaSignatureProvider",
    "SignatureProvider",
    "SignedMessage",
    "TransactionRequestBuilder",
    "parse_transaction_request",
]
