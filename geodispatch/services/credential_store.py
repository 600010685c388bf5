"""
Process-wide provider credential store.

Credentials are loaded from settings at startup and rotated at runtime through
the admin API. Readers take an immutable snapshot so a rotation is never
observed half-applied, and a request keeps the credentials it captured when
provider selection started.
"""

import logging
import threading
from types import MappingProxyType
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class CredentialStore:
    """Lock-guarded mapping ``provider_id -> secret | None``."""

    def __init__(self, initial: Optional[Mapping[str, Optional[str]]] = None):
        self._lock = threading.Lock()
        self._secrets: Dict[str, Optional[str]] = {}
        for provider_id, secret in (initial or {}).items():
            self._secrets[provider_id] = secret or None

    def set(self, provider_id: str, secret: Optional[str]) -> None:
        """
        Set or clear a credential.

        An empty string clears the credential just like None does.
        """
        value = secret.strip() if secret else None
        with self._lock:
            self._secrets[provider_id] = value or None
        # Never log the secret itself
        state = "configured" if value else "cleared"
        logger.info(f"Credential for {provider_id} {state}")

    def get(self, provider_id: str) -> Optional[str]:
        with self._lock:
            return self._secrets.get(provider_id)

    def has(self, provider_id: str) -> bool:
        return bool(self.get(provider_id))

    def snapshot(self) -> Mapping[str, Optional[str]]:
        """Immutable copy of every credential at this instant."""
        with self._lock:
            return MappingProxyType(dict(self._secrets))

    def __repr__(self) -> str:
        with self._lock:
            configured = sorted(pid for pid, secret in self._secrets.items() if secret)
        return f"CredentialStore(configured={configured})"
