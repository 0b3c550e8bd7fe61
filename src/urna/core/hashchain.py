"""Funciones para encadenar hashes de eventos del libro electoral.

English:
    Helpers to chain election ledger event hashes together.
"""

from __future__ import annotations

import hashlib
import json
import logging
import string
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

DOMAIN_TAG = b"urna-ledger-v1"


def _is_valid_hex_hash(value: str) -> bool:
    if len(value) != 64:
        return False
    hex_chars = set(string.hexdigits.lower())
    return all(char in hex_chars for char in value)


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Serializa un payload de forma canónica para hashing.

    English: Serialize a payload canonically for hashing.
    """
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _build_hash_payload(canonical: str, previous_hash: Optional[str]) -> bytes:
    previous_hash_bytes = b""
    if previous_hash:
        normalized = previous_hash.strip().lower()
        previous_hash_bytes = normalized.encode("utf-8")
        if not _is_valid_hex_hash(normalized):
            logger.warning("hashchain_previous_hash_invalid value=%s", normalized)

    canonical_bytes = canonical.encode("utf-8")
    parts = [
        DOMAIN_TAG,
        b"prev",
        str(len(previous_hash_bytes)).encode("utf-8"),
        previous_hash_bytes,
        b"payload",
        str(len(canonical_bytes)).encode("utf-8"),
        canonical_bytes,
    ]
    return b"|".join(parts)


def compute_hash(canonical: str, previous_hash: Optional[str] = None) -> str:
    """Calcula el hash SHA-256 de un evento canónico.

    Si se pasa un hash previo, se incluye con separación de dominio y
    longitudes para mantener la cadena.

    Args:
        canonical (str): Evento en JSON canónico.
        previous_hash (Optional[str]): Hash anterior en la cadena.

    Returns:
        str: Hash SHA-256 en hexadecimal.

    English:
        Computes the SHA-256 hash for a canonical event.

        If a previous hash is provided, it is included with domain and
        length separation to keep the chain.
    """
    hasher = hashlib.sha256()
    hasher.update(_build_hash_payload(canonical, previous_hash))
    return hasher.hexdigest()
