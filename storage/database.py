"""SQLite storage for the novel catalog."""
import sqlite3
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, List, Optional
from contextlib import contextmanager

from utils.logger import setup_logger
from ingestion.models import CandidateRecord, InsertOutcome, Novel
import config

logger = setup_logger(__name__)

SCHEMA_VERSION = 1
META_DB_NAME = "catalog.db"
SEARCH_MODES = ("prefix", "substring")


class StorageUnavailableError(Exception):
    """Raised when the backing database cannot be used."""
    pass


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def _now_ms() -> int:
    return int(time.time() * 1000)


def _insert_if_absent(conn: sqlite3.Connection, record: CandidateRecord, timestamp: int) -> InsertOutcome:
    existing = conn.execute(
        "SELECT id FROM novels WHERE name = ? AND cover_url = ? AND pdf_url = ?",
        (record.name, record.cover_url, record.pdf_url)
    ).fetchone()
    if existing:
        logger.debug(f"Duplicate skipped: {record.name} (ID: {existing['id']})")
        return InsertOutcome(inserted=False)

    cursor = conn.execute(
        "INSERT INTO novels (name, cover_url, pdf_url, timestamp) VALUES (?, ?, ?, ?)",
        (record.name, record.cover_url, record.pdf_url, timestamp)
    )
    novel = Novel(
        id=cursor.lastrowid,
        name=record.name,
        cover_url=record.cover_url,
        pdf_url=record.pdf_url,
        timestamp=timestamp
    )
    return InsertOutcome(inserted=True, novel=novel)


class StoreTransaction:
    """One atomic unit of writes against the current generation.

    Each insert runs inside its own savepoint, so a failing insert is
    rolled back on its own and the rest of the transaction survives.
    """

    def __init__(self, conn: sqlite3.Connection, clock: Callable[[], int]):
        self._conn = conn
        self._clock = clock

    def insert_if_absent(self, record: CandidateRecord) -> InsertOutcome:
        self._conn.execute("SAVEPOINT novel_insert")
        try:
            outcome = _insert_if_absent(self._conn, record, self._clock())
        except sqlite3.Error as e:
            self._conn.execute("ROLLBACK TO novel_insert")
            self._conn.execute("RELEASE novel_insert")
            raise StorageUnavailableError(f"Insert failed for {record.name!r}: {e}") from e
        self._conn.execute("RELEASE novel_insert")
        return outcome


class NovelStore:
    """Manages the catalog database and its generations.

    Records live in one SQLite file per generation; settings and the
    name of the active generation live in a separate metadata database,
    so replacing a generation never touches settings.
    """

    def __init__(
        self,
        data_dir: Path = config.DATA_DIR,
        clock: Callable[[], int] = _now_ms
    ):
        """Open the store, creating a generation if none is active.

        Args:
            data_dir: Directory holding the database files
            clock: Returns the current time in epoch milliseconds
        """
        self.data_dir = Path(data_dir)
        self.clock = clock
        self._generation: Optional[str] = None

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create data directory {self.data_dir}: {e}") from e

        self._initialize_meta_schema()
        self._generation = self._load_active_generation()
        if self._generation is None:
            self.create_generation()
        else:
            self._initialize_generation_schema()
            logger.info(f"Opened generation {self._generation} in {self.data_dir}")

    # ------------------------------------------------------------------
    # Connections and schema

    @contextmanager
    def _connect(self, path: Path) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(path, timeout=5.0, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Cannot open {path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Database error on {path.name}: {e}") from e
        finally:
            conn.close()

    @property
    def meta_path(self) -> Path:
        return self.data_dir / META_DB_NAME

    @property
    def generation_name(self) -> Optional[str]:
        return self._generation

    def _generation_path(self) -> Path:
        if self._generation is None:
            raise StorageUnavailableError("No active generation; create one before using the store")
        return self.data_dir / f"{self._generation}.db"

    def _read_schema(self, filename: str) -> str:
        with open(Path(__file__).parent / filename, 'r') as f:
            return f.read()

    def _initialize_meta_schema(self) -> None:
        schema_sql = self._read_schema("schema_meta.sql")
        with self._connect(self.meta_path) as conn:
            conn.executescript(schema_sql)

    def _initialize_generation_schema(self) -> None:
        schema_sql = self._read_schema("schema.sql")
        with self._connect(self._generation_path()) as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version not in (0, SCHEMA_VERSION):
                raise StorageUnavailableError(
                    f"Generation {self._generation} has schema version {version}, expected {SCHEMA_VERSION}"
                )
            conn.executescript(schema_sql)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def _load_active_generation(self) -> Optional[str]:
        with self._connect(self.meta_path) as conn:
            row = conn.execute(
                "SELECT name FROM generations WHERE active = 1 ORDER BY created_at DESC LIMIT 1"
            ).fetchone()
            return row['name'] if row else None

    # ------------------------------------------------------------------
    # Generations

    def create_generation(self) -> str:
        """Create a new, empty generation and make it active.

        Returns:
            Name of the new generation
        """
        if self._generation is not None:
            raise StorageUnavailableError(
                f"Generation {self._generation} is still active; destroy it first"
            )

        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        name = f"novels_{stamp}_{uuid.uuid4().hex[:8]}"
        self._generation = name
        try:
            self._initialize_generation_schema()
            with self._connect(self.meta_path) as conn:
                conn.execute(
                    "INSERT INTO generations (name, created_at, active) VALUES (?, ?, 1)",
                    (name, datetime.now(timezone.utc).isoformat())
                )
        except StorageUnavailableError:
            self._generation = None
            raise

        logger.info(f"Created generation {name}")
        return name

    def destroy_generation(self) -> None:
        """Irrecoverably discard all records of the active generation."""
        name = self._generation
        if name is None:
            logger.warning("No active generation to destroy")
            return

        path = self._generation_path()
        self._generation = None

        with self._connect(self.meta_path) as conn:
            conn.execute("DELETE FROM generations WHERE name = ?", (name,))

        for suffix in ("", "-journal", "-wal", "-shm"):
            file_path = path.with_name(path.name + suffix)
            try:
                file_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StorageUnavailableError(f"Cannot delete {file_path}: {e}") from e

        logger.info(f"Destroyed generation {name}")

    # ------------------------------------------------------------------
    # Records

    def count(self) -> int:
        """Return the number of records in the active generation."""
        with self._connect(self._generation_path()) as conn:
            return conn.execute("SELECT COUNT(*) FROM novels").fetchone()[0]

    def insert_if_absent(self, record: CandidateRecord) -> InsertOutcome:
        """Insert a record unless its (name, cover, pdf) triple is already stored.

        Args:
            record: Candidate to insert

        Returns:
            Outcome with ``inserted`` False for duplicates
        """
        with self.transaction() as tx:
            return tx.insert_if_absent(record)

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Open an atomic transaction on the active generation.

        Commits on normal exit and rolls back if the block raises.
        """
        with self._connect(self._generation_path()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield StoreTransaction(conn, self.clock)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def page(self, offset: int, limit: int) -> List[Novel]:
        """Return records ordered by name, skipping ``offset`` and returning at most ``limit``.

        OFFSET paging walks past every skipped row, so the cost grows with
        the offset.
        """
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")
        if limit == 0:
            return []

        with self._connect(self._generation_path()) as conn:
            rows = conn.execute(
                "SELECT * FROM novels ORDER BY name, id LIMIT ? OFFSET ?",
                (limit, offset)
            ).fetchall()
            return [Novel.from_row(dict(row)) for row in rows]

    def search_page(self, term: str, offset: int, limit: int, mode: str = "prefix") -> List[Novel]:
        """Return a page of records whose name matches ``term`` case-insensitively.

        Args:
            term: Search term; empty means no filter
            offset: Matching records to skip
            limit: Maximum records to return
            mode: ``prefix`` (name starts with term) or ``substring``

        Returns:
            Matching records ordered by name
        """
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode: {mode}")
        if not term:
            return self.page(offset, limit)
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")
        if limit == 0:
            return []

        condition = "instr(casefold(name), ?) = 1" if mode == "prefix" else "instr(casefold(name), ?) > 0"
        with self._connect(self._generation_path()) as conn:
            rows = conn.execute(
                f"SELECT * FROM novels WHERE {condition} ORDER BY name, id LIMIT ? OFFSET ?",
                (term.casefold(), limit, offset)
            ).fetchall()
            return [Novel.from_row(dict(row)) for row in rows]

    def sample_record(self) -> Optional[Novel]:
        """Return an arbitrary stored record, or None if the store is empty."""
        with self._connect(self._generation_path()) as conn:
            row = conn.execute("SELECT * FROM novels ORDER BY id LIMIT 1").fetchone()
            return Novel.from_row(dict(row)) if row else None

    # ------------------------------------------------------------------
    # Settings

    def settings_get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._connect(self.meta_path) as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row['value'] if row else default

    def settings_put(self, key: str, value: str) -> None:
        with self._connect(self.meta_path) as conn:
            conn.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value)
            )
        logger.debug(f"Setting {key} = {value}")
