"""
Transaction Request Builder - constructs AcquirerTrxReq messages.

Handles request construction with merchant defaults, XML rendering for
protocol version 3.3.1, and signing of the message digest.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Union

import structlog
from lxml import etree

from ideal.config import IdealConfig, get_config
from ideal.core.request import ClockSource, SystemClock
from ideal.core.transaction import AmountLike, TransactionRequest
from ideal.tx.signer import SignatureProvider, as_signature_provider

logger = structlog.get_logger(__name__)

NAMESPACE = "http://www.idealdesk.com/ideal/messages/mer-acq/3.3.1"
PROTOCOL_VERSION = "3.3.1"
ROOT_ELEMENT = "AcquirerTrxReq"

ProviderLike = Union[SignatureProvider, Callable[[str], str]]


class MessageBuildError(Exception):
    """Raised when a message cannot be assembled."""
    pass


def qname(tag: str) -> str:
    """Qualify a tag with the mer-acq namespace."""
    return f"{{{NAMESPACE}}}{tag}"


def _sub(parent: etree._Element, tag: str, text: Optional[str] = None) -> etree._Element:
    element = etree.SubElement(parent, qname(tag))
    if text is not None:
        element.text = text
    return element


def render_transaction_request(request: TransactionRequest) -> etree._ElementTree:
    """
    Render a transaction request as an AcquirerTrxReq document.

    Element order is fixed by the protocol schema.

    Args:
        request: Validated transaction request

    Returns:
        Unsigned XML document
    """
    root = etree.Element(qname(ROOT_ELEMENT), nsmap={None: NAMESPACE})
    root.set("version", PROTOCOL_VERSION)

    _sub(root, "createDateTimestamp", request.create_date_timestamp)

    issuer = _sub(root, "Issuer")
    _sub(issuer, "issuerID", request.padded_issuer_code)

    merchant = _sub(root, "Merchant")
    _sub(merchant, "merchantID", request.padded_merchant_id)
    _sub(merchant, "subID", str(request.merchant_sub_id))
    _sub(merchant, "merchantReturnURL", request.merchant_return_url)

    transaction = _sub(root, "Transaction")
    _sub(transaction, "purchaseID", request.purchase_id)
    _sub(transaction, "amount", request.amount_text)
    _sub(transaction, "currency", request.currency)
    _sub(transaction, "expirationPeriod", request.expiration_text)
    _sub(transaction, "language", request.language)
    _sub(transaction, "description", request.description)
    _sub(transaction, "entranceCode", request.entrance_code)

    return etree.ElementTree(root)


def document_to_bytes(document: etree._ElementTree, pretty_print: bool = False) -> bytes:
    """Serialize with a UTF-8 declaration and no standalone attribute."""
    return etree.tostring(
        document,
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=pretty_print,
    )


@dataclass(frozen=True)
class SignedMessage:
    """
    A rendered request together with its digest and signature.

    The document does not contain the signature; attaching it is up to the
    transport that delivers the message to the acquirer.
    """

    request: TransactionRequest
    document: etree._ElementTree
    digest: str
    signature: str

    def to_bytes(self, pretty_print: bool = False) -> bytes:
        return document_to_bytes(self.document, pretty_print=pretty_print)

    def to_string(self, pretty_print: bool = False) -> str:
        return self.to_bytes(pretty_print=pretty_print).decode("utf-8")


class TransactionRequestBuilder:
    """
    Builds and signs transaction requests.

    Fills in merchant defaults from configuration, renders the XML and
    passes the digest to the signature provider.
    """

    def __init__(
        self,
        signer: Optional[ProviderLike] = None,
        config: Optional[IdealConfig] = None,
        clock: Optional[ClockSource] = None,
    ):
        """
        Initialize the transaction request builder.

        Args:
            signer: Signature provider or plain function (digest -> signature)
            config: Client configuration
            clock: Timestamp source for new requests
        """
        self.signer = as_signature_provider(signer) if signer is not None else None
        self.config = config or get_config()
        self.clock = clock or SystemClock()

    def build(
        self,
        issuer_code: str,
        merchant_return_url: str,
        purchase_id: str,
        amount: AmountLike,
        description: str,
        entrance_code: str,
        expiration_period: Optional[timedelta] = None,
        merchant_id: Optional[str] = None,
        sub_id: Optional[int] = None,
    ) -> TransactionRequest:
        """
        Create a transaction request, using configured merchant defaults.

        Raises:
            RequestValidationError: If any field violates its rule
        """
        if merchant_id is None:
            merchant_id = self.config.merchant_id
        if sub_id is None:
            sub_id = self.config.merchant_sub_id
        if expiration_period is None:
            expiration_period = timedelta(minutes=self.config.default_expiration_minutes)

        request = TransactionRequest.create(
            merchant_id=merchant_id,
            sub_id=sub_id,
            issuer_code=issuer_code,
            merchant_return_url=merchant_return_url,
            purchase_id=purchase_id,
            amount=amount,
            expiration_period=expiration_period,
            description=description,
            entrance_code=entrance_code,
            clock=self.clock,
        )

        logger.debug(
            "transaction_request_created",
            purchase_id=request.purchase_id,
            issuer=request.padded_issuer_code,
        )
        return request

    def render(self, request: TransactionRequest) -> etree._ElementTree:
        """Render the unsigned document for a request."""
        return render_transaction_request(request)

    def to_xml(
        self,
        request: TransactionRequest,
        signature_provider: Optional[ProviderLike] = None,
    ) -> SignedMessage:
        """
        Render a request and sign its digest.

        Args:
            request: The request to render
            signature_provider: Overrides the builder's signer

        Returns:
            SignedMessage with document, digest and signature

        Raises:
            MessageBuildError: If no signer is available or signing fails
        """
        if signature_provider is not None:
            provider = as_signature_provider(signature_provider)
        else:
            provider = self.signer

        if provider is None:
            raise MessageBuildError("No signature provider configured")

        document = self.render(request)
        digest = request.message_digest

        try:
            signature = provider.sign(digest)
        except Exception as e:
            logger.error(
                "message_signing_failed",
                purchase_id=request.purchase_id,
                error=str(e),
            )
            raise MessageBuildError(f"Failed to sign message: {e}") from e

        logger.info(
            "transaction_request_rendered",
            purchase_id=request.purchase_id,
            issuer=request.padded_issuer_code,
            amount=request.amount_text,
        )

        return SignedMessage(
            request=request,
            document=document,
            digest=digest,
            signature=signature,
        )
