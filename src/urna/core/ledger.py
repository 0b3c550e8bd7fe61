"""Libro de eventos append-only encadenado por hashes.

Cada mutación confirmada de la elección produce un eslabón cuyo hash cubre el
evento y el hash del eslabón anterior, de modo que cualquier alteración
posterior rompe la cadena a partir de ese punto.

English:
    Append-only, hash-chained event ledger.

    Every committed election mutation produces a link whose hash covers the
    event and the previous link's hash, so any later tampering breaks the
    chain from that point on.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional

from urna.core.events import ElectionEvent, event_from_payload
from urna.core.hashchain import canonical_json, compute_hash

logger = logging.getLogger(__name__)

Listener = Callable[["LedgerEntry"], None]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


_JSON_SCALARS = (str, int, float, bool, type(None))


def _require_json_scalars(caller: Hashable, payload: Dict[str, Any]) -> None:
    for key, value in (("caller", caller), *payload.items()):
        if not isinstance(value, _JSON_SCALARS):
            raise ValueError(f"Ledger field {key} must be a JSON scalar, got {type(value).__name__}")


@dataclass(frozen=True)
class LedgerEntry:
    """Eslabón individual del libro. / Single ledger link."""

    index: int
    timestamp_utc: str
    caller: Hashable
    event_type: str
    payload: Dict[str, Any]
    previous_hash: Optional[str]
    hash: str

    @property
    def event(self) -> ElectionEvent:
        return event_from_payload(self.event_type, self.payload)

    def canonical(self) -> str:
        return canonical_entry(
            self.index, self.timestamp_utc, self.caller, self.event_type, self.payload
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "timestamp_utc": self.timestamp_utc,
            "caller": self.caller,
            "event_type": self.event_type,
            "payload": dict(self.payload),
            "previous_hash": self.previous_hash,
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEntry":
        return cls(
            index=int(data["index"]),
            timestamp_utc=str(data["timestamp_utc"]),
            caller=data["caller"],
            event_type=str(data["event_type"]),
            payload=dict(data["payload"]),
            previous_hash=data.get("previous_hash"),
            hash=str(data["hash"]),
        )


@dataclass(frozen=True)
class ChainVerificationResult:
    """Resultado de verificar toda la cadena. / Result of full chain verification."""

    valid: bool
    total_links: int
    verified_links: int
    broken_at: Optional[int] = None
    errors: List[str] = field(default_factory=list)
    first_hash: Optional[str] = None
    last_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "total_links": self.total_links,
            "verified_links": self.verified_links,
            "broken_at": self.broken_at,
            "errors": list(self.errors),
            "first_hash": self.first_hash,
            "last_hash": self.last_hash,
        }


def canonical_entry(
    index: int,
    timestamp_utc: str,
    caller: Hashable,
    event_type: str,
    payload: Dict[str, Any],
) -> str:
    return canonical_json(
        {
            "index": index,
            "timestamp_utc": timestamp_utc,
            "caller": caller,
            "event_type": event_type,
            "payload": payload,
        }
    )


class EventLedger:
    """Libro de eventos con notificación síncrona a suscriptores.

    El llamador (la elección) serializa los `append`; el candado interno solo
    protege las lecturas concurrentes de la lista de eslabones.

    English:
        Event ledger with synchronous fan-out to subscribers.

        The caller (the election) serializes `append` calls; the internal
        lock only protects concurrent reads of the link list.
    """

    def __init__(
        self,
        entries: Iterable[LedgerEntry] = (),
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self._entries: List[LedgerEntry] = list(entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def last_hash(self) -> Optional[str]:
        with self._lock:
            return self._entries[-1].hash if self._entries else None

    def entries(self) -> List[LedgerEntry]:
        with self._lock:
            return list(self._entries)

    def append(self, event: ElectionEvent, caller: Hashable) -> LedgerEntry:
        """Agrega un evento confirmado al final de la cadena.

        Raises:
            ValueError: Si el llamador o un campo del evento no es un escalar
                JSON; el libro queda intacto.

        English: Append a committed event to the end of the chain.
        """
        payload = event.to_payload()
        _require_json_scalars(caller, payload)
        with self._lock:
            index = len(self._entries)
            previous_hash = self._entries[-1].hash if self._entries else None
            timestamp = self._clock()
            new_hash = compute_hash(
                canonical_entry(index, timestamp, caller, event.event_type, payload),
                previous_hash,
            )
            entry = LedgerEntry(
                index=index,
                timestamp_utc=timestamp,
                caller=caller,
                event_type=event.event_type,
                payload=payload,
                previous_hash=previous_hash,
                hash=new_hash,
            )
            self._entries.append(entry)
        logger.debug("ledger_entry_appended index=%s event=%s hash=%s", index, entry.event_type, new_hash)
        return entry

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, entry: LedgerEntry) -> None:
        """Notifica un eslabón a cada suscriptor, en orden de suscripción.

        Un suscriptor que falla se registra y no impide a los demás recibir
        la notificación; la mutación ya está confirmada.

        English:
            Notify every subscriber of a link, in subscription order.

            A failing subscriber is logged and does not prevent the others
            from being notified; the mutation is already committed.
        """
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "ledger_listener_failed index=%s event=%s listener=%r",
                    entry.index,
                    entry.event_type,
                    listener,
                )

    def verify(self) -> ChainVerificationResult:
        return verify_entries(self.entries())


def verify_entries(entries: List[LedgerEntry]) -> ChainVerificationResult:
    """Recorre todos los eslabones y verifica su integridad.

    Para cada eslabón n confirma que el índice es n, que `previous_hash`
    apunta a `hash[n-1]` y que el hash almacenado coincide con el recalculado.

    English:
        Walks every link and verifies its integrity.

        For each link n, confirms the index is n, that `previous_hash`
        points at `hash[n-1]`, and that the stored hash matches the
        recomputed one.
    """
    if not entries:
        return ChainVerificationResult(valid=True, total_links=0, verified_links=0)

    errors: List[str] = []
    broken_at: Optional[int] = None
    previous_hash: Optional[str] = None
    verified = 0

    for position, entry in enumerate(entries):
        if entry.index != position:
            errors.append(f"index_mismatch position={position} index={entry.index}")
        if entry.previous_hash != previous_hash:
            errors.append(f"previous_hash_mismatch index={position}")
        expected = compute_hash(entry.canonical(), previous_hash)
        if expected != entry.hash:
            errors.append(f"hash_mismatch index={position}")
        if errors and broken_at is None:
            broken_at = position
        if broken_at is None:
            verified += 1
        previous_hash = entry.hash

    if errors:
        logger.warning("ledger_chain_broken broken_at=%s errors=%s", broken_at, len(errors))

    return ChainVerificationResult(
        valid=not errors,
        total_links=len(entries),
        verified_links=verified,
        broken_at=broken_at,
        errors=errors,
        first_hash=entries[0].hash,
        last_hash=entries[-1].hash,
    )
