import sqlite3
import aiosqlite
import datetime
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from models import WorkoutSet, Exercise, FitnessGoal, GoalType, KG
from tools import LocalCalendar

logger = logging.getLogger(__name__)

MAX_ACTIVE_GOALS = 3


class StoreError(RuntimeError):
    """Raised when the underlying store cannot be read or written."""


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    primary_category TEXT NOT NULL,
                    unit TEXT NOT NULL DEFAULT 'kg',
                    use_warmup_set INTEGER NOT NULL DEFAULT 0,
                    progression_set_count INTEGER,
                    target_rep_min INTEGER,
                    target_rep_max INTEGER,
                    increment_value REAL
                );""",
            [
                "id",
                "name",
                "primary_category",
                "unit",
                "use_warmup_set",
                "progression_set_count",
                "target_rep_min",
                "target_rep_max",
                "increment_value",
            ],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    weight REAL,
                    reps INTEGER,
                    unit TEXT NOT NULL DEFAULT 'kg',
                    is_completed INTEGER NOT NULL DEFAULT 1,
                    rpe INTEGER,
                    rir INTEGER,
                    completed_at TEXT
                );""",
            [
                "id",
                "exercise_id",
                "date",
                "position",
                "weight",
                "reps",
                "unit",
                "is_completed",
                "rpe",
                "rir",
                "completed_at",
            ],
        ),
        "goals": (
            """CREATE TABLE goals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    goal_type TEXT NOT NULL,
                    target_value REAL NOT NULL,
                    exercise_id TEXT,
                    exercise_name TEXT,
                    weight_unit TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    achieved_at TEXT
                );""",
            [
                "id",
                "goal_type",
                "target_value",
                "exercise_id",
                "exercise_name",
                "weight_unit",
                "is_active",
                "created_at",
                "achieved_at",
            ],
        ),
    }

    _INDEXES = (
        "CREATE INDEX IF NOT EXISTS idx_sets_exercise_date ON sets (exercise_id, date);",
        "CREATE INDEX IF NOT EXISTS idx_sets_date ON sets (date);",
    )

    def __init__(
        self, db_path: str = "workout.db", calendar: LocalCalendar | None = None
    ) -> None:
        self._db_path = db_path
        self.calendar = calendar or LocalCalendar()
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            logger.error("cannot open store %s: %s", self._db_path, exc)
            raise StoreError(f"cannot open store {self._db_path}: {exc}") from exc
        try:
            yield connection
            connection.commit()
        except sqlite3.Error as exc:
            connection.rollback()
            logger.error("store operation failed on %s: %s", self._db_path, exc)
            raise StoreError(str(exc)) from exc
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s to current schema", table)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        try:
            conn = await aiosqlite.connect(self._db_path)
        except sqlite3.Error as exc:
            logger.error("cannot open store %s: %s", self._db_path, exc)
            raise StoreError(f"cannot open store {self._db_path}: {exc}") from exc
        try:
            yield conn
            await conn.commit()
        except sqlite3.Error as exc:
            await conn.rollback()
            logger.error("store operation failed on %s: %s", self._db_path, exc)
            raise StoreError(str(exc)) from exc
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


_SET_COLUMNS = (
    "id, exercise_id, date, position, weight, reps, unit, is_completed, rpe, rir, completed_at"
)


def _validate_entry(entry: dict) -> None:
    weight = entry.get("weight")
    reps = entry.get("reps")
    if weight is not None and weight < 0:
        raise ValueError("weight must be non-negative")
    if reps is not None and reps < 0:
        raise ValueError("reps must be non-negative")
    for key in ("rpe", "rir"):
        value = entry.get(key)
        if value is not None and not 0 <= value <= 10:
            raise ValueError(f"{key} must be between 0 and 10")


class _SetQueries:
    """SQL shared by the sync and async set repositories."""

    calendar: LocalCalendar

    def _row_to_set(self, row: Tuple) -> WorkoutSet:
        sid, exercise_id, date, position, weight, reps, unit, completed, rpe, rir, completed_at = row
        return WorkoutSet(
            id=int(sid),
            exercise_id=exercise_id,
            date=self.calendar.from_storage(date),
            order=int(position),
            weight=float(weight) if weight is not None else None,
            reps=int(reps) if reps is not None else None,
            unit=unit or KG,
            is_completed=bool(completed),
            rpe=rpe,
            rir=rir,
            completed_at=self.calendar.from_storage(completed_at) if completed_at else None,
        )

    def _select_query(
        self,
        exercise_id: Optional[str],
        start: Optional[datetime.datetime],
        end: Optional[datetime.datetime],
        completed_only: bool,
    ) -> tuple[str, tuple]:
        query = f"SELECT {_SET_COLUMNS} FROM sets"
        params: list = []
        where_clauses: list[str] = []
        if exercise_id is not None:
            where_clauses.append("exercise_id = ?")
            params.append(exercise_id)
        if start is not None:
            where_clauses.append("date >= ?")
            params.append(self.calendar.to_storage(start))
        if end is not None:
            where_clauses.append("date < ?")
            params.append(self.calendar.to_storage(end))
        if completed_only:
            where_clauses.append("is_completed = 1")
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY date, position, id;"
        return query, tuple(params)

    def _day_bounds(self, when: datetime.datetime | datetime.date) -> tuple[str, str]:
        day = self.calendar.day_of(when)
        start, end = self.calendar.day_range(day, day + datetime.timedelta(days=1))
        return self.calendar.to_storage(start), self.calendar.to_storage(end)

    def _insert_rows(
        self,
        exercise_id: str,
        when: datetime.datetime,
        entries: list[dict],
        unit: str,
    ) -> list[tuple]:
        stamp = self.calendar.to_storage(when)
        rows = []
        for index, entry in enumerate(entries):
            _validate_entry(entry)
            rows.append(
                (
                    exercise_id,
                    stamp,
                    index + 1,
                    entry.get("weight"),
                    entry.get("reps"),
                    entry.get("unit", unit),
                    int(entry.get("is_completed", True)),
                    entry.get("rpe"),
                    entry.get("rir"),
                    stamp,
                )
            )
        return rows


_INSERT_SET = (
    "INSERT INTO sets (exercise_id, date, position, weight, reps, unit, is_completed, rpe, rir, completed_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);"
)


class SetRepository(BaseRepository, _SetQueries):
    """Repository for sets table operations."""

    def fetch_sets(
        self,
        exercise_id: Optional[str] = None,
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
        completed_only: bool = True,
    ) -> List[WorkoutSet]:
        """Return sets matching the filters ordered by date then order.

        ``start`` is inclusive and ``end`` exclusive.
        """
        query, params = self._select_query(exercise_id, start, end, completed_only)
        return [self._row_to_set(r) for r in self.fetch_all(query, params)]

    def fetch_day(
        self, exercise_id: str, when: datetime.datetime | datetime.date
    ) -> List[WorkoutSet]:
        lo, hi = self._day_bounds(when)
        rows = self.fetch_all(
            f"SELECT {_SET_COLUMNS} FROM sets WHERE exercise_id = ? AND date >= ? AND date < ? "
            "ORDER BY position, id;",
            (exercise_id, lo, hi),
        )
        return [self._row_to_set(r) for r in rows]

    def replace_day(
        self,
        exercise_id: str,
        when: datetime.datetime,
        entries: Iterable[dict],
        unit: str = KG,
    ) -> list[int]:
        """Replace every set of ``exercise_id`` on the local day of ``when``.

        ``entries`` are dicts with ``weight``, ``reps`` and optionally
        ``rpe``, ``rir``, ``is_completed`` and ``unit``. The delete and the
        inserts share one transaction.
        """
        entries = list(entries)
        rows = self._insert_rows(exercise_id, when, entries, unit)
        lo, hi = self._day_bounds(when)
        ids: list[int] = []
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM sets WHERE exercise_id = ? AND date >= ? AND date < ?;",
                (exercise_id, lo, hi),
            )
            for row in rows:
                ids.append(conn.execute(_INSERT_SET, row).lastrowid)
        logger.debug(
            "replaced day sets",
            extra={"workout_exercise_id": exercise_id, "workout_sets": len(ids)},
        )
        return ids

    def delete_day(self, exercise_id: str, when: datetime.datetime | datetime.date) -> None:
        lo, hi = self._day_bounds(when)
        self.execute(
            "DELETE FROM sets WHERE exercise_id = ? AND date >= ? AND date < ?;",
            (exercise_id, lo, hi),
        )

    def delete_all(self) -> None:
        self._delete_all("sets")


class AsyncSetRepository(AsyncBaseRepository, _SetQueries):
    """Async repository for sets table operations."""

    async def fetch_sets(
        self,
        exercise_id: Optional[str] = None,
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
        completed_only: bool = True,
    ) -> List[WorkoutSet]:
        query, params = self._select_query(exercise_id, start, end, completed_only)
        rows = await self.fetch_all(query, params)
        return [self._row_to_set(r) for r in rows]

    async def replace_day(
        self,
        exercise_id: str,
        when: datetime.datetime,
        entries: Iterable[dict],
        unit: str = KG,
    ) -> list[int]:
        entries = list(entries)
        rows = self._insert_rows(exercise_id, when, entries, unit)
        lo, hi = self._day_bounds(when)
        ids: list[int] = []
        async with self._async_connection() as conn:
            await conn.execute(
                "DELETE FROM sets WHERE exercise_id = ? AND date >= ? AND date < ?;",
                (exercise_id, lo, hi),
            )
            for row in rows:
                cursor = await conn.execute(_INSERT_SET, row)
                ids.append(cursor.lastrowid)
        return ids


class ExerciseRepository(BaseRepository):
    """Repository for exercise configuration."""

    _COLUMNS = (
        "id, name, primary_category, unit, use_warmup_set, progression_set_count, "
        "target_rep_min, target_rep_max, increment_value"
    )

    @staticmethod
    def _row_to_exercise(row: Tuple) -> Exercise:
        return Exercise(
            id=row[0],
            name=row[1],
            primary_category=row[2],
            unit=row[3] or KG,
            use_warmup_set=bool(row[4]),
            progression_set_count=row[5],
            target_rep_min=row[6],
            target_rep_max=row[7],
            increment_value=row[8],
        )

    def save(self, exercise: Exercise) -> None:
        if (
            exercise.target_rep_min is not None
            and exercise.target_rep_max is not None
            and exercise.target_rep_min > exercise.target_rep_max
        ):
            raise ValueError("target_rep_min must not exceed target_rep_max")
        self.execute(
            f"INSERT OR REPLACE INTO exercises ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                exercise.id,
                exercise.name,
                exercise.primary_category,
                exercise.unit,
                int(exercise.use_warmup_set),
                exercise.progression_set_count,
                exercise.target_rep_min,
                exercise.target_rep_max,
                exercise.increment_value,
            ),
        )

    def fetch_exercises(self, exercise_id: Optional[str] = None) -> List[Exercise]:
        query = f"SELECT {self._COLUMNS} FROM exercises"
        params: tuple = ()
        if exercise_id is not None:
            query += " WHERE id = ?"
            params = (exercise_id,)
        rows = self.fetch_all(query + " ORDER BY name;", params)
        return [self._row_to_exercise(r) for r in rows]

    def fetch(self, exercise_id: str) -> Exercise:
        rows = self.fetch_exercises(exercise_id)
        if not rows:
            raise ValueError("exercise not found")
        return rows[0]

    def remove(self, exercise_id: str) -> None:
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))


class GoalRepository(BaseRepository):
    """Repository for goal management."""

    _COLUMNS = (
        "id, goal_type, target_value, exercise_id, exercise_name, weight_unit, "
        "is_active, created_at, achieved_at"
    )

    def _row_to_goal(self, row: Tuple) -> FitnessGoal:
        return FitnessGoal(
            id=int(row[0]),
            goal_type=GoalType(row[1]),
            target_value=float(row[2]),
            exercise_id=row[3],
            exercise_name=row[4],
            weight_unit=row[5],
            is_active=bool(row[6]),
            created_at=self.calendar.from_storage(row[7]),
            achieved_at=self.calendar.from_storage(row[8]) if row[8] else None,
        )

    def _stamp(self, moment: Optional[datetime.datetime]) -> Optional[str]:
        return self.calendar.to_storage(moment) if moment is not None else None

    def save(self, goal: FitnessGoal) -> int:
        """Insert ``goal`` (when it has no id) or update it; returns the goal id."""
        if goal.target_value <= 0:
            raise ValueError("target_value must be positive")
        if goal.goal_type is GoalType.SPECIFIC_LIFT and not goal.exercise_id:
            raise ValueError("specific lift goals require an exercise")
        created = goal.created_at or self.calendar.now()
        with self._connection() as conn:
            if goal.is_active:
                # the goal itself does not count against the cap on update
                (active,) = conn.execute(
                    "SELECT COUNT(*) FROM goals WHERE is_active = 1 AND id != ?;",
                    (goal.id if goal.id is not None else -1,),
                ).fetchone()
                if active >= MAX_ACTIVE_GOALS:
                    raise ValueError(f"at most {MAX_ACTIVE_GOALS} goals can be active")
            if goal.id is None:
                cursor = conn.execute(
                    "INSERT INTO goals (goal_type, target_value, exercise_id, exercise_name, weight_unit, "
                    "is_active, created_at, achieved_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        goal.goal_type.value,
                        goal.target_value,
                        goal.exercise_id,
                        goal.exercise_name,
                        goal.weight_unit,
                        int(goal.is_active),
                        self._stamp(created),
                        self._stamp(goal.achieved_at),
                    ),
                )
                return cursor.lastrowid
            cursor = conn.execute(
                "UPDATE goals SET goal_type = ?, target_value = ?, exercise_id = ?, exercise_name = ?, "
                "weight_unit = ?, is_active = ?, achieved_at = ? WHERE id = ?;",
                (
                    goal.goal_type.value,
                    goal.target_value,
                    goal.exercise_id,
                    goal.exercise_name,
                    goal.weight_unit,
                    int(goal.is_active),
                    self._stamp(goal.achieved_at),
                    goal.id,
                ),
            )
            if cursor.rowcount == 0:
                raise ValueError("goal not found")
            return goal.id

    def fetch_goals(self, active_only: bool = False) -> List[FitnessGoal]:
        query = f"SELECT {self._COLUMNS} FROM goals"
        if active_only:
            query += " WHERE is_active = 1"
        rows = self.fetch_all(query + " ORDER BY created_at, id;")
        return [self._row_to_goal(r) for r in rows]

    def fetch(self, goal_id: int) -> FitnessGoal:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM goals WHERE id = ?;", (goal_id,)
        )
        if not rows:
            raise ValueError("goal not found")
        return self._row_to_goal(rows[0])

    def delete(self, goal_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM goals WHERE id = ?;", (goal_id,))
        if not rows:
            raise ValueError("goal not found")
        self.execute("DELETE FROM goals WHERE id = ?;", (goal_id,))

    def deactivate(self, goal_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM goals WHERE id = ?;", (goal_id,))
        if not rows:
            raise ValueError("goal not found")
        self.execute("UPDATE goals SET is_active = 0 WHERE id = ?;", (goal_id,))

    def mark_achieved(
        self, goal_id: int, when: Optional[datetime.datetime] = None
    ) -> None:
        rows = self.fetch_all("SELECT id FROM goals WHERE id = ?;", (goal_id,))
        if not rows:
            raise ValueError("goal not found")
        self.execute(
            "UPDATE goals SET achieved_at = ? WHERE id = ?;",
            (self._stamp(when or self.calendar.now()), goal_id),
        )

    def delete_all(self) -> None:
        self._delete_all("goals")
