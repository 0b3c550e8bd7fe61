# Storage Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Persistencia del libro en JSON
#   2) Reproducción verificada
#   3) Almacén de elecciones por identificador, con candado de archivo
#
# EN: Quick index
#   1) JSON ledger persistence
#   2) Verified replay
#   3) Election store keyed by id, with a file lock

"""Almacenamiento del libro electoral y reproducción verificada.

English:
    Election ledger storage and verified replay.
"""

from __future__ import annotations

import fcntl
import json
import logging
import re
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Hashable, Iterator, List, Optional

from urna import __version__
from urna.core.election import Election
from urna.core.errors import LedgerConflictError, LedgerIntegrityError
from urna.core.ledger import ChainVerificationResult, EventLedger, LedgerEntry

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "ledger.json"
LOCK_SUFFIX = ".lock"
_ELECTION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def write_atomic(path: Path, content: bytes) -> None:
    """Escritura atómica usando archivo temporal.

    English: Atomic write using a temporary file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(path.parent)) as tmp_file:
        tmp_file.write(content)
        temp_name = tmp_file.name
    shutil.move(temp_name, path)


def save_ledger(ledger: EventLedger, path: Path) -> str | None:
    """Guarda el libro completo y devuelve el último hash.

    English: Save the whole ledger and return the last hash.
    """
    entries = ledger.entries()
    document = {
        "software_version": __version__,
        "entries": [entry.to_dict() for entry in entries],
    }
    write_atomic(path, json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8"))
    last_hash = entries[-1].hash if entries else None
    logger.info("ledger_saved path=%s entries=%s last_hash=%s", path, len(entries), last_hash)
    return last_hash


def load_ledger(path: Path) -> EventLedger:
    """Carga un libro desde disco sin reproducirlo.

    Raises:
        LedgerIntegrityError: Si el archivo no tiene la forma esperada.

    English:
        Load a ledger from disk without replaying it.
    """
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error("ledger_corrupt_file path=%s error=%s", path, exc)
        raise LedgerIntegrityError(f"Ledger file is not valid JSON: {path}") from exc

    raw_entries = document.get("entries") if isinstance(document, dict) else None
    if not isinstance(raw_entries, list):
        raise LedgerIntegrityError(f"Ledger file has no entry list: {path}")
    try:
        entries = [LedgerEntry.from_dict(item) for item in raw_entries]
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerIntegrityError(f"Malformed ledger entry in {path}: {exc}") from exc
    return EventLedger(entries)


def load_election(path: Path) -> Election:
    """Carga, verifica y reproduce una elección. / Load, verify and replay an election."""
    return Election.from_ledger(load_ledger(path))


class FileLock:
    """Candado exclusivo entre procesos basado en `fcntl.flock`.

    English: Exclusive cross-process lock backed by `fcntl.flock`.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._file: Optional[IO[str]] = None

    def __enter__(self) -> "FileLock":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a+", encoding="utf-8")
        fcntl.flock(self._file.fileno(), fcntl.LOCK_EX)
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None


class ElectionStore:
    """Almacén de elecciones bajo `<base>/elections/<id>/ledger.json`.

    Es el punto de aprovisionamiento: `create` instancia la elección una
    vez y devuelve su identificador, que luego sirve de manija para `open`.
    Cada elección tiene un candado de archivo (`ledger.json.lock`) que
    serializa a todos los escritores, también entre procesos; `transaction`
    lo mantiene desde la lectura hasta la escritura.

    English:
        Election store under `<base>/elections/<id>/ledger.json`.

        It is the provisioning entry point: `create` instantiates the
        election once and returns its id, later used as a handle by `open`.
        Each election has a file lock (`ledger.json.lock`) serializing every
        writer, across processes too; `transaction` holds it from read to
        write.
    """

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)

    def _ledger_path(self, election_id: str) -> Path:
        if not _ELECTION_ID_PATTERN.fullmatch(election_id):
            raise ValueError(f"Invalid election id: {election_id}")
        return self.base_path / "elections" / election_id / LEDGER_FILENAME

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(path.with_name(path.name + LOCK_SUFFIX))

    def create(self, name: str, admin: Hashable, election_id: str | None = None) -> str:
        election_id = election_id or uuid.uuid4().hex[:12]
        path = self._ledger_path(election_id)
        with self._lock_for(path):
            if path.exists():
                raise FileExistsError(f"Election already exists: {election_id}")
            election = Election.create(name, admin)
            save_ledger(election.ledger, path)
        logger.info("election_provisioned election_id=%s path=%s", election_id, path)
        return election_id

    def open(self, election_id: str) -> Election:
        path = self._ledger_path(election_id)
        if not path.exists():
            raise FileNotFoundError(f"Unknown election: {election_id}")
        return load_election(path)

    def verify(self, election_id: str) -> ChainVerificationResult:
        """Verifica la cadena guardada sin reproducirla.

        English: Verify the stored chain without replaying it.
        """
        path = self._ledger_path(election_id)
        if not path.exists():
            raise FileNotFoundError(f"Unknown election: {election_id}")
        return load_ledger(path).verify()

    def commit(self, election_id: str, election: Election) -> str | None:
        """Guarda la elección si su libro extiende el que hay en disco.

        Raises:
            LedgerConflictError: Si otro escritor confirmó eslabones que esta
                copia no tiene.

        English:
            Save the election if its ledger extends the one on disk.
        """
        path = self._ledger_path(election_id)
        with self._lock_for(path):
            return self._commit_locked(election_id, path, election)

    @contextmanager
    def transaction(self, election_id: str) -> Iterator[Election]:
        """Abre, entrega y guarda la elección bajo el candado de archivo.

        Si el bloque lanza una excepción no se guarda nada.

        English:
            Open, yield and save the election under the file lock. Nothing
            is saved when the block raises.
        """
        path = self._ledger_path(election_id)
        with self._lock_for(path):
            election = self.open(election_id)
            yield election
            self._commit_locked(election_id, path, election)

    def _commit_locked(self, election_id: str, path: Path, election: Election) -> str | None:
        entries = election.ledger.entries()
        stored = load_ledger(path).entries() if path.exists() else []
        # The in-memory chain must extend the stored one link for link.
        if len(stored) > len(entries) or (stored and entries[len(stored) - 1].hash != stored[-1].hash):
            logger.error(
                "ledger_commit_conflict election_id=%s stored=%s local=%s",
                election_id,
                len(stored),
                len(entries),
            )
            raise LedgerConflictError(f"Election {election_id} was modified by another writer")
        if len(stored) == len(entries):
            return stored[-1].hash if stored else None
        return save_ledger(election.ledger, path)

    def list(self) -> List[str]:
        root = self.base_path / "elections"
        if not root.exists():
            return []
        return sorted(path.parent.name for path in root.glob(f"*/{LEDGER_FILENAME}"))
