# supertags/indexing/signatures.py
"""
Cryptographic signatures for event records.

The host signs each record it emits so an indexer fed through an
untrusted channel can check provenance. Uses RSA-SHA256 over the same
options-hash + document-hash construction as Linked Data Signatures
(RsaSignature2017).
"""

import base64
import hashlib
import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .record import EventRecord

SIGNATURE_TYPE = "RsaSignature2017"


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def _canonicalize(data: Dict[str, Any]) -> str:
    """Canonical JSON: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _hash_sha256(data: str) -> bytes:
    return hashlib.sha256(data.encode()).digest()


def _signed_bytes(record: EventRecord, options: Dict[str, Any]) -> bytes:
    options_hash = _hash_sha256(_canonicalize(options))
    document_hash = _hash_sha256(_canonicalize(record.payload()))
    return options_hash + document_hash


@dataclass
class Signer:
    """
    A host signing identity.

    Attributes:
        key_id: Identifier published alongside signatures
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (kept secret)
    """
    key_id: str
    public_key: bytes
    private_key: bytes

    @classmethod
    def create(cls, key_id: str = "supertags-host") -> "Signer":
        """Create a signer with a freshly generated key pair."""
        private_pem, public_pem = _generate_keypair()
        return cls(key_id=key_id, public_key=public_pem, private_key=private_pem)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_id": self.key_id,
            "public_key": self.public_key.decode("utf-8"),
            "private_key": self.private_key.decode("utf-8"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signer":
        return cls(
            key_id=data["key_id"],
            public_key=data["public_key"].encode("utf-8"),
            private_key=data["private_key"].encode("utf-8"),
        )

    def save(self, path: Path | str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # O_CREAT mode does not apply to a file that already exists
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path | str) -> "Signer":
        with open(path) as f:
            return cls.from_dict(json.load(f))


def sign_record(record: EventRecord, signer: Signer) -> EventRecord:
    """
    Sign a record with the signer's private key.

    Args:
        record: The record to sign
        signer: The host identity whose key signs the record

    Returns:
        The same record with its signature attached
    """
    private_key = serialization.load_pem_private_key(
        signer.private_key,
        password=None,
    )
    created = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    options = {
        "type": SIGNATURE_TYPE,
        "creator": signer.key_id,
        "created": created,
    }
    signature_bytes = private_key.sign(
        _signed_bytes(record, options),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )

    record.signature = dict(options)
    record.signature["signatureValue"] = base64.b64encode(signature_bytes).decode("utf-8")
    return record


def verify_record(record: EventRecord, public_key_pem: bytes) -> bool:
    """
    Verify a record's signature.

    Args:
        record: The record with signature
        public_key_pem: PEM-encoded public key

    Returns:
        True if signature is valid
    """
    if not record.signature:
        return False

    try:
        public_key = serialization.load_pem_public_key(public_key_pem)
        options = {
            "type": record.signature["type"],
            "creator": record.signature["creator"],
            "created": record.signature["created"],
        }
        signature_bytes = base64.b64decode(record.signature["signatureValue"])
        public_key.verify(
            signature_bytes,
            _signed_bytes(record, options),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True

    except (InvalidSignature, KeyError, ValueError):
        return False
