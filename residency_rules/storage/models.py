"""SQLite persistence for trips and tracking goals."""

import sqlite3
from pathlib import Path
from ..core.types import TrackingGoal, TripRecord


class Storage:
    """Storage operations for trips and goals."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def save_trip(self, trip: TripRecord) -> None:
        """Insert or replace a trip."""
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO trips (id, out_date, in_date, data) VALUES (?, ?, ?, ?)",
                (trip.id, trip.out_date, trip.in_date, trip.model_dump_json()),
            )

    def save_trips(self, trips: list[TripRecord]) -> None:
        for trip in trips:
            self.save_trip(trip)

    def load_trip(self, trip_id: str) -> TripRecord | None:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT data FROM trips WHERE id = ?", (trip_id,)
            ).fetchone()
            if row:
                return TripRecord.model_validate_json(row["data"])
            return None

    def load_all_trips(self) -> list[TripRecord]:
        """Load all trips ordered by departure date; undated trips last."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT data FROM trips ORDER BY out_date IS NULL, out_date, id"
            ).fetchall()
            return [TripRecord.model_validate_json(row["data"]) for row in rows]

    def delete_trip(self, trip_id: str) -> bool:
        """Delete a trip. Returns False if it did not exist."""
        with self._conn() as conn:
            cursor = conn.execute("DELETE FROM trips WHERE id = ?", (trip_id,))
            return cursor.rowcount > 0

    def save_goal(self, goal: TrackingGoal) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO goals (id, goal_type, is_active, data, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    goal.goal_id,
                    goal.goal_type.value,
                    int(goal.is_active),
                    goal.model_dump_json(),
                    goal.created_at.isoformat(),
                ),
            )

    def load_goal(self, goal_id: str) -> TrackingGoal | None:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT data FROM goals WHERE id = ?", (goal_id,)
            ).fetchone()
            if row:
                return TrackingGoal.model_validate_json(row["data"])
            return None

    def load_all_goals(self, active_only: bool = False) -> list[TrackingGoal]:
        query = "SELECT data FROM goals"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY created_at, id"
        with self._conn() as conn:
            rows = conn.execute(query).fetchall()
            return [TrackingGoal.model_validate_json(row["data"]) for row in rows]
