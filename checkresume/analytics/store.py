from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from checkresume.ai.types import ProviderAttempt
from checkresume.core.errors import PersistenceUnavailable

from .models import AnalyticsTrendPoint, UserAnalytics

logger = logging.getLogger(__name__)

AnalyticsUpdate = Callable[[Optional[UserAnalytics]], UserAnalytics]

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS user_analytics (
        user_id TEXT PRIMARY KEY,
        total_analyses INTEGER NOT NULL,
        average_score REAL NOT NULL,
        average_ats_score REAL NOT NULL,
        best_score REAL NOT NULL,
        worst_score REAL NOT NULL,
        latest_ats_score REAL NOT NULL,
        previous_ats_score REAL NOT NULL,
        last_updated TEXT,
        version INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS analytics_trends (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        ats_score REAL NOT NULL,
        overall_score REAL NOT NULL,
        keyword_density REAL NOT NULL,
        skills_match REAL NOT NULL,
        readability_score REAL NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_analytics_trends_user
    ON analytics_trends (user_id, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS provider_attempts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT NOT NULL,
        provider_id TEXT NOT NULL,
        model TEXT NOT NULL,
        attempt INTEGER NOT NULL,
        outcome TEXT NOT NULL,
        detail TEXT,
        latency_ms INTEGER
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_provider_attempts_created_at
    ON provider_attempts (created_at)
    """,
)

_USER_COLUMNS = (
    "user_id",
    "total_analyses",
    "average_score",
    "average_ats_score",
    "best_score",
    "worst_score",
    "latest_ats_score",
    "previous_ats_score",
    "last_updated",
    "version",
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteAnalyticsStore:
    """SQLite persistence for user aggregates, trend points and provider telemetry.

    One connection per store, guarded by a thread lock, so blocking calls can be
    pushed to worker threads. Every ``sqlite3.Error`` surfaces as
    :class:`PersistenceUnavailable`; retrying is left to the caller.
    """

    def __init__(self, db_path: str | Path):
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def init(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                if self._db_path != ":memory:":
                    Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    self._db_path,
                    check_same_thread=False,
                    timeout=5,
                    isolation_level=None,
                )
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute("PRAGMA busy_timeout=5000;")
                for statement in _SCHEMA:
                    conn.execute(statement)
            except (sqlite3.Error, OSError) as exc:
                raise PersistenceUnavailable(f"Could not open analytics store '{self._db_path}': {exc}") from exc
            self._conn = conn
        logger.info("analytics_store_opened path=%s", self._db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("analytics_store_closed path=%s", self._db_path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceUnavailable("Analytics store is not open.")
        return self._conn

    # ------------------------ user_analytics ------------------------
    def get_user_analytics(self, user_id: str) -> UserAnalytics | None:
        with self._lock:
            conn = self._connection()
            try:
                return self._select_user(conn, user_id)
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not read analytics for user '{user_id}': {exc}") from exc

    def apply_user_analytics(self, user_id: str, update: AnalyticsUpdate) -> UserAnalytics:
        """Read, transform and upsert one user's aggregate inside a single write transaction."""
        with self._lock:
            conn = self._connection()
            cursor = conn.cursor()
            try:
                cursor.execute("BEGIN IMMEDIATE")
                try:
                    current = self._select_user(conn, user_id)
                    updated = update(current)
                    self._upsert_user(cursor, updated)
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not update analytics for user '{user_id}': {exc}") from exc
            return updated

    @staticmethod
    def _select_user(conn: sqlite3.Connection, user_id: str) -> UserAnalytics | None:
        row = conn.execute(
            f"SELECT {', '.join(_USER_COLUMNS)} FROM user_analytics WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        data = dict(zip(_USER_COLUMNS, row))
        data["last_updated"] = _parse_iso(data["last_updated"])
        return UserAnalytics(**data)

    @staticmethod
    def _upsert_user(cursor: sqlite3.Cursor, analytics: UserAnalytics) -> None:
        cursor.execute(
            f"""
            INSERT INTO user_analytics ({', '.join(_USER_COLUMNS)})
            VALUES ({', '.join('?' for _ in _USER_COLUMNS)})
            ON CONFLICT(user_id) DO UPDATE SET
                total_analyses = excluded.total_analyses,
                average_score = excluded.average_score,
                average_ats_score = excluded.average_ats_score,
                best_score = excluded.best_score,
                worst_score = excluded.worst_score,
                latest_ats_score = excluded.latest_ats_score,
                previous_ats_score = excluded.previous_ats_score,
                last_updated = excluded.last_updated,
                version = excluded.version
            """,
            (
                analytics.user_id,
                analytics.total_analyses,
                analytics.average_score,
                analytics.average_ats_score,
                analytics.best_score,
                analytics.worst_score,
                analytics.latest_ats_score,
                analytics.previous_ats_score,
                _iso(analytics.last_updated),
                analytics.version,
            ),
        )

    # ------------------------ analytics_trends ------------------------
    def append_trend_point(self, point: AnalyticsTrendPoint) -> None:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    """
                    INSERT INTO analytics_trends (
                        user_id, created_at, ats_score, overall_score,
                        keyword_density, skills_match, readability_score
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        point.user_id,
                        _iso(point.timestamp),
                        point.ats_score,
                        point.overall_score,
                        point.keyword_density,
                        point.skills_match,
                        point.readability_score,
                    ),
                )
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not append trend point for user '{point.user_id}': {exc}") from exc

    def list_trend_points(self, user_id: str, limit: int = 30) -> list[AnalyticsTrendPoint]:
        """Latest ``limit`` trend points for a user, oldest first."""
        with self._lock:
            conn = self._connection()
            try:
                rows = conn.execute(
                    """
                    SELECT user_id, created_at, ats_score, overall_score,
                           keyword_density, skills_match, readability_score
                    FROM analytics_trends
                    WHERE user_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (user_id, max(0, int(limit))),
                ).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not read trend points for user '{user_id}': {exc}") from exc
        return [
            AnalyticsTrendPoint(
                user_id=row[0],
                timestamp=_parse_iso(row[1]),
                ats_score=row[2],
                overall_score=row[3],
                keyword_density=row[4],
                skills_match=row[5],
                readability_score=row[6],
            )
            for row in reversed(rows)
        ]

    # ------------------------ provider_attempts ------------------------
    def log_provider_attempt(self, attempt: ProviderAttempt) -> None:
        summary = attempt.summary()
        detail = summary.get("detail")
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    """
                    INSERT INTO provider_attempts (
                        created_at, provider_id, model, attempt, outcome, detail, latency_ms
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        _iso(attempt.started_at),
                        attempt.provider_id,
                        attempt.model,
                        attempt.attempt,
                        attempt.outcome.kind,
                        None if detail is None else str(detail),
                        attempt.latency_ms,
                    ),
                )
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not log provider attempt: {exc}") from exc

    def count_provider_attempts(self) -> int:
        with self._lock:
            conn = self._connection()
            try:
                return int(conn.execute("SELECT COUNT(*) FROM provider_attempts").fetchone()[0])
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not count provider attempts: {exc}") from exc

    def purge_old_attempts(self, retention_days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=max(1, int(retention_days)))
        with self._lock:
            conn = self._connection()
            try:
                cur = conn.execute("DELETE FROM provider_attempts WHERE created_at < ?", (cutoff.isoformat(),))
            except sqlite3.Error as exc:
                raise PersistenceUnavailable(f"Could not purge provider attempts: {exc}") from exc
        return int(cur.rowcount or 0)
