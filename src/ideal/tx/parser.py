"""
Transaction Request Parser - reads rendered AcquirerTrxReq documents.

Rebuilds a TransactionRequest through the normal validating constructor.
Zero padding of the merchant and issuer ids is not undone, so parsed ids
keep their padded form.
"""

import re
from datetime import timedelta
from typing import Union

import structlog
from lxml import etree

from ideal.core.request import FixedClock
from ideal.core.transaction import CURRENCY, TransactionRequest
from ideal.tx.builder import NAMESPACE, PROTOCOL_VERSION, ROOT_ELEMENT, qname

logger = structlog.get_logger(__name__)

_NS = {"m": NAMESPACE}
_DURATION = re.compile(r"^PT(\d+)S$")


class MessageParseError(Exception):
    """Raised when a document is not a valid AcquirerTrxReq."""
    pass


def _text(root: etree._Element, path: str) -> str:
    element = root.find(path, _NS)
    if element is None:
        raise MessageParseError(f"Missing element: {path.replace('m:', '')}")
    return element.text or ""


def _parse_duration(value: str) -> timedelta:
    match = _DURATION.match(value.strip())
    if not match:
        raise MessageParseError(f"Unsupported expiration period: {value!r}")
    return timedelta(seconds=int(match.group(1)))


def parse_transaction_request(data: Union[bytes, str]) -> TransactionRequest:
    """
    Parse an AcquirerTrxReq document.

    Args:
        data: XML document as bytes or text

    Returns:
        TransactionRequest with the document's field values

    Raises:
        MessageParseError: If the document is malformed or not a 3.3.1 AcquirerTrxReq
        RequestValidationError: If a field value violates its rule
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise MessageParseError(f"Malformed document: {e}") from e

    if root.tag != qname(ROOT_ELEMENT):
        raise MessageParseError(f"Unexpected root element: {root.tag}")
    if root.get("version") != PROTOCOL_VERSION:
        raise MessageParseError(f"Unsupported version: {root.get('version')}")

    sub_id = _text(root, "m:Merchant/m:subID")
    try:
        merchant_sub_id = int(sub_id)
    except ValueError:
        raise MessageParseError(f"Invalid subID: {sub_id!r}") from None

    currency = _text(root, "m:Transaction/m:currency")
    if currency != CURRENCY:
        raise MessageParseError(f"Unsupported currency: {currency!r}")

    request = TransactionRequest.create(
        merchant_id=_text(root, "m:Merchant/m:merchantID"),
        sub_id=merchant_sub_id,
        issuer_code=_text(root, "m:Issuer/m:issuerID"),
        merchant_return_url=_text(root, "m:Merchant/m:merchantReturnURL"),
        purchase_id=_text(root, "m:Transaction/m:purchaseID"),
        amount=_text(root, "m:Transaction/m:amount"),
        expiration_period=_parse_duration(_text(root, "m:Transaction/m:expirationPeriod")),
        description=_text(root, "m:Transaction/m:description"),
        entrance_code=_text(root, "m:Transaction/m:entranceCode"),
        clock=FixedClock(_text(root, "m:createDateTimestamp")),
    )

    logger.debug("transaction_request_parsed", purchase_id=request.purchase_id)
    return request
