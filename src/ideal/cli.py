"""
Command-line interface for the iDEAL merchant client.

Provides commands for inspecting digests, rendering transaction requests
and creating test keys.
"""

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import structlog

from ideal import __version__
from ideal.config import IdealConfig, set_config
from ideal.core.request import FixedClock, RequestValidationError, SystemClock
from ideal.core.transaction import TransactionRequest
from ideal.tx.builder import TransactionRequestBuilder, document_to_bytes
from ideal.tx.signer import RsaSignatureProvider, generate_test_key

logger = structlog.get_logger(__name__)


class SigningKeyError(Exception):
    """Raised when the configured private key cannot be loaded."""
    pass


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout carries the rendered documents
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_request_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--merchant-id",
        help="Merchant id (default: IDEAL_MERCHANT_ID)",
    )
    parser.add_argument(
        "--sub-id",
        type=int,
        help="Merchant sub id (default: IDEAL_MERCHANT_SUB_ID or 0)",
    )
    parser.add_argument(
        "--issuer",
        required=True,
        help="Issuer code of the consumer's bank",
    )
    parser.add_argument(
        "--return-url",
        required=True,
        help="Url the consumer returns to after paying",
    )
    parser.add_argument(
        "--purchase-id",
        required=True,
        help="Purchase id (max 16 characters)",
    )
    parser.add_argument(
        "--amount",
        required=True,
        help="Amount in euro, e.g. 10.00",
    )
    parser.add_argument(
        "--description",
        default="",
        help="Description (max 32 characters)",
    )
    parser.add_argument(
        "--entrance-code",
        required=True,
        help="Entrance code (max 40 characters)",
    )
    parser.add_argument(
        "--expiration-seconds",
        type=int,
        help="Expiration period in seconds (60-3600, default: 1800)",
    )
    parser.add_argument(
        "--timestamp",
        help="Fixed createDateTimestamp (default: current UTC time)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ideal",
        description="Build iDEAL transaction requests",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    digest_parser = subparsers.add_parser("digest", help="Print the message digest")
    _add_request_arguments(digest_parser)

    render_parser = subparsers.add_parser("render", help="Render the AcquirerTrxReq document")
    _add_request_arguments(render_parser)
    render_parser.add_argument(
        "--private-key",
        help="Path to PEM private key used to sign the digest",
    )
    render_parser.add_argument(
        "--key-password",
        help="Password of the private key",
    )
    render_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty print the document",
    )

    keygen_parser = subparsers.add_parser("keygen", help="Generate a test RSA key pair")
    keygen_parser.add_argument(
        "--output-dir", "-o",
        default="./keys",
        help="Output directory for keys (default: ./keys)",
    )
    keygen_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing keys",
    )
    keygen_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


def build_request(args: argparse.Namespace, config: IdealConfig) -> TransactionRequest:
    """Create a transaction request from command-line arguments."""
    clock = FixedClock(args.timestamp) if args.timestamp else SystemClock()
    builder = TransactionRequestBuilder(config=config, clock=clock)

    expiration = None
    if args.expiration_seconds is not None:
        expiration = timedelta(seconds=args.expiration_seconds)

    return builder.build(
        issuer_code=args.issuer,
        merchant_return_url=args.return_url,
        purchase_id=args.purchase_id,
        amount=args.amount,
        description=args.description,
        entrance_code=args.entrance_code,
        expiration_period=expiration,
        merchant_id=args.merchant_id,
        sub_id=args.sub_id,
    )


def print_digest(args: argparse.Namespace, config: IdealConfig) -> None:
    """Print the digest string of a request."""
    request = build_request(args, config)
    print(request.message_digest)


def render_request(args: argparse.Namespace, config: IdealConfig) -> None:
    """Print the document, and the signature when a key is available."""
    request = build_request(args, config)

    signer = RsaSignatureProvider(config)
    try:
        if args.private_key:
            signer.load_key_from_file(args.private_key, args.key_password)
        elif config.private_key_path or config.private_key_pem:
            signer.load_from_config()
    except (OSError, ValueError, TypeError) as e:
        # TypeError: password given for a plain key, or missing for an encrypted one
        raise SigningKeyError(f"Cannot load private key: {e}") from e

    builder = TransactionRequestBuilder(signer=signer if signer.is_loaded else None, config=config)

    if signer.is_loaded:
        message = builder.to_xml(request)
        print(message.to_string(pretty_print=args.pretty))
        print(f"Signature: {message.signature}")
    else:
        logger.warning("no_signing_key", detail="rendering unsigned document")
        document = builder.render(request)
        print(document_to_bytes(document, pretty_print=args.pretty).decode("utf-8"))


def generate_keys(output_dir: str, force: bool = False) -> Optional[Path]:
    """
    Write a fresh RSA key pair for testing.

    Args:
        output_dir: Directory to save keys
        force: Overwrite existing keys

    Returns:
        Path of the private key, or None if keys already existed
    """
    output_path = Path(output_dir)
    private_path = output_path / "private.pem"
    public_path = output_path / "public.pem"

    if private_path.exists() and not force:
        print(f"Keys already exist at {output_dir}")
        print("Use --force to overwrite")
        return None

    output_path.mkdir(parents=True, exist_ok=True)

    signer = generate_test_key()
    private_path.write_text(signer.private_key_pem())
    public_path.write_text(signer.public_key_pem())

    print(f"Keys saved to: {output_dir}/")
    print("   - private.pem (KEEP SECRET!)")
    print("   - public.pem")
    return private_path


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    log_level = getattr(args, "log_level", "INFO")
    log_json = getattr(args, "log_json", False)
    setup_logging(log_level, log_json)

    config = IdealConfig()
    set_config(config)

    try:
        if args.command == "digest":
            print_digest(args, config)
        elif args.command == "render":
            render_request(args, config)
        elif args.command == "keygen":
            generate_keys(args.output_dir, args.force)
    except RequestValidationError as e:
        print(f"Invalid {e.field}: {e.message}", file=sys.stderr)
        sys.exit(2)
    except SigningKeyError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
