"""
Logging - Sensitive Masker

Les identifiants de connexion, clés de routage PagerDuty et URLs de webhook
ne doivent jamais apparaître en clair dans les logs de failover.
"""

import re
from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker

# user:password@ dans une DSN ou une URL
_URL_CREDENTIALS = re.compile(r"(://[^:/@\s]+:)[^@\s]+@")


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des données sensibles.

    Example:
        masker = SensitiveMasker()
        masker.mask({"db_password": "x", "region": "us-east-1"})
        # {"db_password": "***MASKED***", "region": "us-east-1"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        """
        Args:
            additional_patterns: Patterns supplémentaires à masquer
        """
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.lower() not in self._patterns:
                self._patterns.append(pattern.lower())

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque récursivement toutes les données sensibles.

        Comportement:
            - Clés contenant un pattern sensible → valeur masquée
            - Valeurs dict → récursion
            - Valeurs list → masque chaque élément
            - Chaînes contenant user:password@ → mot de passe masqué

        Args:
            data: Dictionnaire à masquer

        Returns:
            Copie avec données sensibles masquées
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                result[key] = self.mask(value)
            elif isinstance(value, (list, tuple)):
                result[key] = self._mask_list(list(value))
            elif isinstance(value, str):
                result[key] = self.mask_credentials_in_text(value)
            else:
                result[key] = value
        return result

    def _mask_list(self, items: List[Any]) -> List[Any]:
        result = []
        for item in items:
            if isinstance(item, dict):
                result.append(self.mask(item))
            elif isinstance(item, list):
                result.append(self._mask_list(item))
            elif isinstance(item, str):
                result.append(self.mask_credentials_in_text(item))
            else:
                result.append(item)
        return result

    def mask_credentials_in_text(self, value: str) -> str:
        """
        Masque le mot de passe d'une URL ou DSN présente dans un texte libre.

        Les messages d'erreur des drivers reprennent parfois la DSN complète.
        """
        return _URL_CREDENTIALS.sub(lambda m: f"{m.group(1)}{self.MASK_VALUE}@", value)

    def is_sensitive_key(self, key: str) -> bool:
        """
        Vérifie si clé contient un pattern sensible (insensible à la casse).

        Args:
            key: Nom de la clé à vérifier

        Returns:
            True si clé contient pattern sensible
        """
        if not key:
            return False
        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)
