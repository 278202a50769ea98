"""
Crypto Provider Implementation

Signature ECDSA-P384 et hachage SHA-384 des enregistrements d'audit.
"""

import hashlib
from pathlib import Path
from typing import Dict, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

from .interfaces import ICryptoProvider


class CryptoProvider(ICryptoProvider):
    """Signature ECDSA-P384 avec clés par identifiant."""

    def __init__(self, keys: Optional[Dict[str, EllipticCurvePrivateKey]] = None):
        self._keys: Dict[str, EllipticCurvePrivateKey] = dict(keys or {})

    @classmethod
    def from_pem_file(cls, key_id: str, path: Union[str, Path]) -> "CryptoProvider":
        """
        Charge une clé privée PEM pour que les signatures survivent aux redémarrages.

        Raises:
            ValueError: Si la clé n'est pas une clé EC
        """
        data = Path(path).read_bytes()
        private_key = serialization.load_pem_private_key(data, password=None)
        if not isinstance(private_key, EllipticCurvePrivateKey):
            raise ValueError(f"{path} does not contain an EC private key")
        return cls({key_id: private_key})

    def _get_or_create_key(self, key_id: str) -> EllipticCurvePrivateKey:
        """Récupère ou crée une clé ECDSA-P384."""
        if key_id not in self._keys:
            self._keys[key_id] = ec.generate_private_key(ec.SECP384R1())
        return self._keys[key_id]

    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Args:
            data: Données à signer
            key_id: ID de la clé

        Returns:
            Signature DER-encoded
        """
        private_key = self._get_or_create_key(key_id)
        return private_key.sign(data, ec.ECDSA(hashes.SHA384()))

    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        if key_id not in self._keys:
            return False
        public_key = self._keys[key_id].public_key()
        try:
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA384()))
            return True
        except InvalidSignature:
            return False

    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        return hashlib.sha384(data).hexdigest()
