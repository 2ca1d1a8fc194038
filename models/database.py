"""SQLite persistence for observations, control scores, and alerts."""
import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path

from models.alerts import Alert, AlertInsert, AlertUpdate, Create, UpdateExisting, AutoResolve
from models.enums import AlertStatus, OPEN_STATUSES
from models.observations import Observation
from models.scores import ControlScore, ControlScoreInsert, ControlScoreUpdate

logger = logging.getLogger("site360.db")

# entity -> (columns, server-assigned columns, immutable columns)
ENTITIES = {
    "observations": (
        ("id", "site_id", "dimension", "metric_key", "value", "unit", "observed_at",
         "source_table", "source_id"),
        ("id",),
        ("id", "source_table", "source_id", "metric_key"),
    ),
    "control_scores": (
        ("id", "site_id", "dimension", "date", "score", "factors", "trend",
         "recommendations", "calculated_at", "calculated_by"),
        ("id", "calculated_at"),
        ("id", "site_id", "dimension", "date"),
    ),
    "alerts": (
        ("id", "site_id", "dimension", "severity", "title", "message", "source_table",
         "source_id", "status", "action_required", "action_taken", "created_at",
         "acknowledged_at", "acknowledged_by", "resolved_at", "resolved_by"),
        ("id", "created_at"),
        ("id", "created_at"),
    ),
}

_OPEN_STATUS_VALUES = tuple(s.value for s in OPEN_STATUSES)


def _now():
    return datetime.now(timezone.utc).isoformat()


class Database:
    def __init__(self, db_path="data/site360.db"):
        self.db_path = db_path
        self.conn = None

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS observations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                site_id TEXT NOT NULL,
                dimension TEXT NOT NULL,
                metric_key TEXT NOT NULL,
                value REAL NOT NULL,
                unit TEXT,
                observed_at TEXT NOT NULL,
                source_table TEXT NOT NULL,
                source_id TEXT NOT NULL,
                UNIQUE (source_table, source_id, metric_key)
            );

            CREATE INDEX IF NOT EXISTS idx_observations_site_dim
                ON observations(site_id, dimension, observed_at);

            CREATE TABLE IF NOT EXISTS control_scores (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                site_id TEXT NOT NULL,
                dimension TEXT NOT NULL,
                date TEXT NOT NULL,
                score REAL NOT NULL CHECK (score >= 0 AND score <= 100),
                factors TEXT,
                trend TEXT,
                recommendations TEXT,
                calculated_at TEXT NOT NULL,
                calculated_by TEXT NOT NULL,
                UNIQUE (site_id, dimension, date)
            );

            CREATE TABLE IF NOT EXISTS alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                site_id TEXT NOT NULL,
                dimension TEXT,
                severity TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                source_table TEXT,
                source_id TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                action_required TEXT,
                action_taken TEXT,
                created_at TEXT NOT NULL,
                acknowledged_at TEXT,
                acknowledged_by TEXT,
                resolved_at TEXT,
                resolved_by TEXT
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_alerts_open_key
                ON alerts(site_id, COALESCE(dimension, ''), COALESCE(source_table, ''),
                          COALESCE(source_id, ''))
                WHERE status IN ('active', 'acknowledged');

            CREATE INDEX IF NOT EXISTS idx_alerts_status
                ON alerts(status, created_at);
        """)
        self.conn.commit()

    # --- Generic entity access ---

    def _columns(self, entity):
        if entity not in ENTITIES:
            raise KeyError(f"Unknown entity: {entity}")
        return ENTITIES[entity]

    def insert(self, entity, shape):
        """Insert a creation shape (or dict). Server-assigned columns are filled here."""
        columns, server_assigned, _ = self._columns(entity)
        row = shape.to_row() if hasattr(shape, "to_row") else dict(shape)
        if "id" in row:
            raise ValueError(f"{entity}: id is assigned by the store")
        unknown = set(row) - set(columns)
        if unknown:
            raise ValueError(f"{entity}: unknown columns {sorted(unknown)}")
        for col in server_assigned:
            if col != "id" and not row.get(col):
                row[col] = _now()
        cols = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        cur = self.conn.execute(
            f"INSERT INTO {entity} ({cols}) VALUES ({marks})", tuple(row.values())
        )
        self.conn.commit()
        return cur.lastrowid

    def update(self, entity, row_id, shape, expected=None):
        """Apply a partial update; ``expected`` adds compare-and-set conditions.

        Returns True when a row was changed.
        """
        _, _, immutable = self._columns(entity)
        changes = shape.to_row() if hasattr(shape, "to_row") else dict(shape)
        blocked = set(changes) & set(immutable)
        if blocked:
            raise ValueError(f"{entity}: immutable columns {sorted(blocked)}")
        where = "id = ?"
        conditions = [row_id]
        for col, val in (expected or {}).items():
            where += f" AND {col} = ?"
            conditions.append(val)
        if not changes:
            found = self.conn.execute(f"SELECT 1 FROM {entity} WHERE {where}", conditions).fetchone()
            return found is not None
        sets = ", ".join(f"{col} = ?" for col in changes)
        params = list(changes.values()) + conditions
        cur = self.conn.execute(f"UPDATE {entity} SET {sets} WHERE {where}", params)
        self.conn.commit()
        return cur.rowcount > 0

    def get(self, entity, row_id):
        self._columns(entity)
        row = self.conn.execute(f"SELECT * FROM {entity} WHERE id = ?", (row_id,)).fetchone()
        return dict(row) if row else None

    def select(self, entity, order_by="id", limit=None, **filters):
        columns, _, _ = self._columns(entity)
        if order_by.split()[0] not in columns:
            raise ValueError(f"{entity}: cannot order by {order_by}")
        query = f"SELECT * FROM {entity} WHERE 1=1"
        params = []
        for col, val in filters.items():
            if col not in columns:
                raise ValueError(f"{entity}: unknown filter {col}")
            if isinstance(val, (list, tuple, set)):
                query += f" AND {col} IN ({', '.join('?' for _ in val)})"
                params.extend(getattr(v, "value", v) for v in val)
            else:
                query += f" AND {col} = ?"
                params.append(getattr(val, "value", val))
        query += f" ORDER BY {order_by}"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        return [dict(r) for r in self.conn.execute(query, params).fetchall()]

    # --- Observations ---

    def save_observations(self, observations):
        """Store observations; a re-ingested record replaces its earlier metrics."""
        rows = [o.to_dict() for o in observations]
        self.conn.executemany("""
            INSERT INTO observations
            (site_id, dimension, metric_key, value, unit, observed_at, source_table, source_id)
            VALUES (:site_id, :dimension, :metric_key, :value, :unit, :observed_at,
                    :source_table, :source_id)
            ON CONFLICT (source_table, source_id, metric_key) DO UPDATE SET
                site_id = excluded.site_id,
                dimension = excluded.dimension,
                value = excluded.value,
                unit = excluded.unit,
                observed_at = excluded.observed_at
        """, rows)
        self.conn.commit()
        logger.debug(f"Saved {len(rows)} observations")
        return len(rows)

    def get_observations(self, site_id, dimension=None, day=None):
        query = "SELECT * FROM observations WHERE site_id = ?"
        params = [site_id]
        if dimension is not None:
            query += " AND dimension = ?"
            params.append(getattr(dimension, "value", dimension))
        if day is not None:
            query += " AND substr(observed_at, 1, 10) = ?"
            params.append(str(day))
        query += " ORDER BY observed_at ASC, id ASC"
        rows = self.conn.execute(query, params).fetchall()
        return [Observation.from_dict(dict(r)) for r in rows]

    def get_observation_days(self, site_id):
        rows = self.conn.execute("""
            SELECT DISTINCT substr(observed_at, 1, 10) AS day
            FROM observations WHERE site_id = ? ORDER BY day
        """, (site_id,)).fetchall()
        return [r["day"] for r in rows]

    # --- Control Scores ---

    def upsert_score(self, score):
        """Write a score into its (site, dimension, date) slot, replacing any earlier one."""
        shape = score.to_insert() if isinstance(score, ControlScore) else score
        if not isinstance(shape, ControlScoreInsert):
            raise TypeError("upsert_score expects a ControlScore or ControlScoreInsert")
        row = shape.to_row()
        if not row["calculated_at"]:
            row["calculated_at"] = _now()
        self.conn.execute("""
            INSERT INTO control_scores
            (site_id, dimension, date, score, factors, trend, recommendations,
             calculated_at, calculated_by)
            VALUES (:site_id, :dimension, :date, :score, :factors, :trend, :recommendations,
                    :calculated_at, :calculated_by)
            ON CONFLICT (site_id, dimension, date) DO UPDATE SET
                score = excluded.score,
                factors = excluded.factors,
                trend = excluded.trend,
                recommendations = excluded.recommendations,
                calculated_at = excluded.calculated_at,
                calculated_by = excluded.calculated_by
        """, row)
        self.conn.commit()
        found = self.conn.execute(
            "SELECT id FROM control_scores WHERE site_id = ? AND dimension = ? AND date = ?",
            (row["site_id"], row["dimension"], row["date"]),
        ).fetchone()
        return found["id"]

    def update_score(self, score_id, changes: ControlScoreUpdate):
        return self.update("control_scores", score_id, changes)

    def get_score(self, site_id, dimension, day):
        row = self.conn.execute("""
            SELECT * FROM control_scores WHERE site_id = ? AND dimension = ? AND date = ?
        """, (site_id, getattr(dimension, "value", dimension), str(day))).fetchone()
        return ControlScore.from_dict(dict(row)) if row else None

    def get_previous_score(self, site_id, dimension, before):
        """Most recent score for (site, dimension) strictly before the given date."""
        row = self.conn.execute("""
            SELECT * FROM control_scores
            WHERE site_id = ? AND dimension = ? AND date < ?
            ORDER BY date DESC LIMIT 1
        """, (site_id, getattr(dimension, "value", dimension), str(before))).fetchone()
        return ControlScore.from_dict(dict(row)) if row else None

    def get_latest_scores(self, site_id=None):
        """Latest score per (site, dimension), for dashboard display."""
        query = """
            SELECT cs.* FROM control_scores cs
            JOIN (
                SELECT site_id, dimension, MAX(date) AS latest
                FROM control_scores GROUP BY site_id, dimension
            ) m ON cs.site_id = m.site_id AND cs.dimension = m.dimension AND cs.date = m.latest
        """
        params = []
        if site_id:
            query += " WHERE cs.site_id = ?"
            params.append(site_id)
        query += " ORDER BY cs.site_id, cs.dimension"
        rows = self.conn.execute(query, params).fetchall()
        return [ControlScore.from_dict(dict(r)) for r in rows]

    def get_score_history(self, site_id, dimension, limit=30):
        rows = self.conn.execute("""
            SELECT * FROM control_scores WHERE site_id = ? AND dimension = ?
            ORDER BY date DESC LIMIT ?
        """, (site_id, getattr(dimension, "value", dimension), limit)).fetchall()
        return [ControlScore.from_dict(dict(r)) for r in reversed(rows)]

    def get_site_ids(self):
        rows = self.conn.execute("""
            SELECT site_id FROM observations
            UNION SELECT site_id FROM control_scores
            UNION SELECT site_id FROM alerts
            ORDER BY site_id
        """).fetchall()
        return [r["site_id"] for r in rows]

    # --- Alerts ---

    def get_alert(self, alert_id):
        row = self.get("alerts", alert_id)
        return Alert.from_dict(row) if row else None

    def get_open_alerts(self, site_id=None):
        filters = {"status": _OPEN_STATUS_VALUES}
        if site_id:
            filters["site_id"] = site_id
        return [Alert.from_dict(r) for r in self.select("alerts", **filters)]

    def get_alerts(self, status=None, site_id=None, limit=100):
        filters = {}
        if status:
            filters["status"] = status
        if site_id:
            filters["site_id"] = site_id
        rows = self.select("alerts", order_by="created_at DESC", limit=limit, **filters)
        return [Alert.from_dict(r) for r in rows]

    def get_alert_stats(self):
        """Open alert counts by severity."""
        rows = self.conn.execute(f"""
            SELECT severity, COUNT(*) AS count FROM alerts
            WHERE status IN ({', '.join('?' for _ in _OPEN_STATUS_VALUES)})
            GROUP BY severity
        """, _OPEN_STATUS_VALUES).fetchall()
        return {r["severity"]: r["count"] for r in rows}

    def create_alert(self, shape: AlertInsert):
        """Insert an alert. Returns the new id, or None if an open alert already holds the key."""
        try:
            return self.insert("alerts", shape)
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            logger.warning(f"Open alert already exists for {shape.alert_key}: {e}")
            return None

    def apply_mutation(self, mutation):
        """Apply one dispatcher mutation as a conditional write. Returns the affected alert id or None."""
        if isinstance(mutation, Create):
            return self.create_alert(mutation.alert)
        if isinstance(mutation, UpdateExisting):
            changes = mutation.changes
        elif isinstance(mutation, AutoResolve):
            changes = AlertUpdate(
                status=AlertStatus.RESOLVED,
                resolved_at=mutation.resolved_at,
                resolved_by=mutation.resolved_by,
            )
        else:
            raise TypeError(f"Unknown mutation: {mutation!r}")
        ok = self.update("alerts", mutation.alert_id, changes,
                         expected={"status": mutation.expected_status.value})
        if not ok:
            logger.warning(
                f"Alert {mutation.alert_id} changed since evaluation "
                f"(expected {mutation.expected_status.value}); skipped {mutation.kind}"
            )
            return None
        return mutation.alert_id

    def save_alert_transition(self, before: Alert, after: Alert):
        """Persist a human lifecycle transition, guarded on the status it started from."""
        changes = AlertUpdate(
            status=after.status,
            action_taken=after.action_taken if after.action_taken != before.action_taken else None,
            acknowledged_at=after.acknowledged_at if after.acknowledged_at != before.acknowledged_at else None,
            acknowledged_by=after.acknowledged_by if after.acknowledged_by != before.acknowledged_by else None,
            resolved_at=after.resolved_at if after.resolved_at != before.resolved_at else None,
            resolved_by=after.resolved_by if after.resolved_by != before.resolved_by else None,
        )
        return self.update("alerts", before.id, changes, expected={"status": before.status.value})
