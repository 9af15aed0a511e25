"""
Signature providers - sign message digests.

The transaction request only produces the digest string; turning it into a
signature is delegated to a provider so tests and alternative key stores
can be plugged in.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ideal.config import IdealConfig, get_config

logger = structlog.get_logger(__name__)


class SignatureProvider(ABC):
    """Turns a digest string into a signature string."""

    @abstractmethod
    def sign(self, digest: str) -> str:
        """
        Sign a message digest.

        Args:
            digest: Canonical digest string of the message

        Returns:
            Signature value
        """
        pass

    def __call__(self, digest: str) -> str:
        return self.sign(digest)


class CallableSignatureProvider(SignatureProvider):
    """Adapts a plain function to the SignatureProvider interface."""

    def __init__(self, func: Callable[[str], str]):
        self.func = func

    def sign(self, digest: str) -> str:
        return self.func(digest)


def as_signature_provider(provider) -> SignatureProvider:
    """Wrap callables so callers may pass either a provider or a function."""
    if isinstance(provider, SignatureProvider):
        return provider
    if callable(provider):
        return CallableSignatureProvider(provider)
    raise TypeError(f"Not a signature provider: {provider!r}")


class RsaSignatureProvider(SignatureProvider):
    """
    Signs digests with the merchant's RSA key.

    The signature is RSA PKCS#1 v1.5 over SHA-256 of the UTF-8 encoded
    digest, returned base64 encoded.

    Supports loading keys from:
    - File path (PEM, optionally password protected)
    - PEM text (for environment variable configuration)
    """

    def __init__(self, config: Optional[IdealConfig] = None):
        """
        Initialize the signature provider.

        Args:
            config: Client configuration
        """
        self.config = config or get_config()
        self._private_key: Optional[rsa.RSAPrivateKey] = None
        self._public_key: Optional[rsa.RSAPublicKey] = None

    def load_key_from_file(self, key_path: str, password: Optional[str] = None) -> None:
        """
        Load the private key from a PEM file.

        Args:
            key_path: Path to the private key file
            password: Password of an encrypted key
        """
        path = Path(key_path)
        if not path.exists():
            raise FileNotFoundError(f"Private key file not found: {key_path}")

        self._set_key(path.read_bytes(), password)
        logger.info("signing_key_loaded", path=key_path, key_size=self._private_key.key_size)

    def load_key_from_pem(self, pem: str, password: Optional[str] = None) -> None:
        """
        Load the private key from PEM text.

        Args:
            pem: PEM encoded private key
            password: Password of an encrypted key
        """
        self._set_key(pem.encode("ascii"), password)
        logger.info("signing_key_loaded_from_pem", key_size=self._private_key.key_size)

    def load_from_config(self) -> None:
        """Load the private key from configuration."""
        password = self.config.private_key_password
        if self.config.private_key_path:
            self.load_key_from_file(self.config.private_key_path, password)
        elif self.config.private_key_pem:
            self.load_key_from_pem(self.config.private_key_pem, password)
        else:
            raise ValueError("No private key configured")

    def _set_key(self, data: bytes, password: Optional[str]) -> None:
        key = serialization.load_pem_private_key(
            data,
            password=password.encode("utf-8") if password else None,
        )
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("Private key is not an RSA key")
        self._private_key = key
        self._public_key = key.public_key()

    @property
    def is_loaded(self) -> bool:
        """Check if a private key is loaded."""
        return self._private_key is not None

    @property
    def public_key(self) -> Optional[rsa.RSAPublicKey]:
        return self._public_key

    def public_key_pem(self) -> str:
        """Get the public key in PEM format."""
        if not self._public_key:
            raise RuntimeError("No signing key loaded")
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def sign(self, digest: str) -> str:
        if not self._private_key:
            raise RuntimeError("No signing key loaded")

        signature = self._private_key.sign(
            digest.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        logger.debug("digest_signed", digest_length=len(digest))
        return base64.b64encode(signature).decode("ascii")

    def verify(self, digest: str, signature: str) -> bool:
        """
        Check a signature produced by ``sign``.

        Args:
            digest: The digest that was signed
            signature: Base64 encoded signature

        Returns:
            True if the signature matches the digest
        """
        if not self._public_key:
            raise RuntimeError("No signing key loaded")

        try:
            raw = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            return False

        try:
            self._public_key.verify(
                raw,
                digest.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except InvalidSignature:
            return False
        return True

    def private_key_pem(self, password: Optional[str] = None) -> str:
        """Export the loaded private key as PKCS#8 PEM."""
        if not self._private_key:
            raise RuntimeError("No signing key loaded")
        if password:
            encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
        else:
            encryption = serialization.NoEncryption()
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        ).decode("ascii")


def generate_test_key(key_size: int = 2048) -> RsaSignatureProvider:
    """
    Generate a new random signing key for testing.

    WARNING: Do not use in production. The key is not persisted.

    Returns:
        RsaSignatureProvider with a new random key
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    provider = RsaSignatureProvider(IdealConfig())
    provider._private_key = private_key
    provider._public_key = private_key.public_key()

    logger.warning("test_key_generated", key_size=key_size)

    return provider
