"""
Credentials

Les secrets viennent de l'environnement du processus. La configuration ne
contient que des références (préfixes de variables), jamais les valeurs.
"""

import os
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional


class MissingCredentialError(Exception):
    """Variable d'environnement obligatoire absente."""

    def __init__(self, names: List[str]) -> None:
        self.names = names
        super().__init__(f"Missing required environment variables: {', '.join(names)}")


@dataclass(frozen=True)
class DatabaseCredentials:
    user: str
    password: str = field(repr=False)


class EnvironmentCredentials:
    """Accès en lecture aux secrets fournis par l'environnement."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """
        Args:
            environ: Mapping à utiliser à la place de os.environ (tests)
        """
        self._environ = environ if environ is not None else os.environ

    def get(self, name: str) -> Optional[str]:
        """Retourne la variable ou None si absente ou vide."""
        value = self._environ.get(name)
        return value if value else None

    def require(self, names: Iterable[str]) -> None:
        """
        Vérifie la présence de toutes les variables demandées.

        Raises:
            MissingCredentialError: Liste de toutes les variables absentes
        """
        missing = [name for name in names if not self.get(name)]
        if missing:
            raise MissingCredentialError(missing)

    def database(self, credentials_ref: str) -> DatabaseCredentials:
        """
        Résout <REF>_USER et <REF>_PASSWORD.

        Raises:
            MissingCredentialError: Si l'une des deux variables manque
        """
        user_var = f"{credentials_ref}_USER"
        password_var = f"{credentials_ref}_PASSWORD"
        self.require([user_var, password_var])
        return DatabaseCredentials(
            user=self._environ[user_var],
            password=self._environ[password_var],
        )
