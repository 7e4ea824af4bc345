from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from jobingest.core.models import STATUS_ACTIVE, JobPosting, utc_now

JOB_COLUMNS = (
    "title",
    "company",
    "location",
    "apply_link",
    "posted_date",
    "salary",
    "tags",
    "status",
    "applied",
    "source",
    "source_id",
    "date_scraped",
    "last_updated",
    "search_text",
)

# Left untouched when a posting is written over an existing row.
PRESERVED_COLUMNS = ("applied", "date_scraped")


@dataclass(slots=True)
class StoredJob:
    id: int
    title: str
    company: str
    location: str
    apply_link: str
    posted_date: datetime
    source: str
    source_id: str | None = None
    salary: str | None = None
    tags: list[str] = field(default_factory=list)
    status: str = STATUS_ACTIVE
    applied: bool = False
    date_scraped: datetime | None = None
    last_updated: datetime | None = None
    search_text: str = ""

    def to_posting(self) -> JobPosting:
        return JobPosting(
            title=self.title,
            company=self.company,
            location=self.location,
            apply_link=self.apply_link,
            posted_date=self.posted_date,
            source=self.source,
            source_id=self.source_id,
            salary=self.salary,
            tags=tuple(self.tags),
            status=self.status,
            applied=self.applied,
            date_scraped=self.date_scraped or utc_now(),
            last_updated=self.last_updated or utc_now(),
            search_text=self.search_text,
        )


class JobRepository:
    def __init__(self, db_path: str = "data/jobingest.db") -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # The registry may scrape on worker threads; writes still happen on the caller's thread.
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                company TEXT NOT NULL,
                location TEXT,
                apply_link TEXT NOT NULL UNIQUE,
                posted_date TEXT,
                salary TEXT,
                tags TEXT,
                status TEXT,
                applied INTEGER DEFAULT 0,
                source TEXT,
                source_id TEXT,
                date_scraped TEXT,
                last_updated TEXT,
                search_text TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_jobs_company ON jobs(company);
            CREATE INDEX IF NOT EXISTS idx_jobs_location ON jobs(location);
            CREATE TABLE IF NOT EXISTS runs (
                run_id INTEGER PRIMARY KEY AUTOINCREMENT,
                started_at TEXT,
                finished_at TEXT,
                num_scraped INTEGER,
                num_created INTEGER,
                num_updated INTEGER,
                num_skipped INTEGER,
                num_failed INTEGER
            );
            CREATE TABLE IF NOT EXISTS run_errors (
                run_id INTEGER,
                source TEXT,
                reason TEXT,
                trace_summary TEXT
            );
            """
        )
        self.conn.commit()

    def upsert_job(self, job: JobPosting) -> int:
        """Insert ``job`` or overwrite the row sharing its apply link; returns the row id."""
        values = _posting_values(job)
        updates = ", ".join(f"{col}=excluded.{col}" for col in JOB_COLUMNS if col not in PRESERVED_COLUMNS)
        self.conn.execute(
            f"""
            INSERT INTO jobs ({", ".join(JOB_COLUMNS)}) VALUES ({", ".join("?" for _ in JOB_COLUMNS)})
            ON CONFLICT(apply_link) DO UPDATE SET {updates}
            """,
            values,
        )
        self.conn.commit()
        row = self.conn.execute("SELECT id FROM jobs WHERE apply_link=?", (job.apply_link,)).fetchone()
        return int(row["id"])

    def update_job(self, job_id: int, job: JobPosting) -> StoredJob:
        columns = [col for col in JOB_COLUMNS if col not in PRESERVED_COLUMNS]
        record = dict(zip(JOB_COLUMNS, _posting_values(job)))
        record["last_updated"] = utc_now().isoformat()
        assignments = ", ".join(f"{col}=?" for col in columns)
        cur = self.conn.execute(
            f"UPDATE jobs SET {assignments} WHERE id=?",
            (*(record[col] for col in columns), job_id),
        )
        self.conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"Job {job_id} not found")
        stored = self.get_job_by_id(job_id)
        if stored is None:
            raise KeyError(f"Job {job_id} not found")
        return stored

    def get_job_by_id(self, job_id: int) -> StoredJob | None:
        row = self.conn.execute("SELECT * FROM jobs WHERE id=?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def get_jobs(
        self,
        company: str | None = None,
        location: str | None = None,
        search_text: str | None = None,
        apply_link: str | None = None,
        source: str | None = None,
        status: str | None = None,
        applied: bool | None = None,
    ) -> list[StoredJob]:
        """Exact match on every given field; ``search_text`` is a case-insensitive substring."""
        clauses: list[str] = []
        params: list[object] = []
        for column, value in (
            ("company", company),
            ("location", location),
            ("apply_link", apply_link),
            ("source", source),
            ("status", status),
        ):
            if value is not None:
                clauses.append(f"{column}=?")
                params.append(value)
        if applied is not None:
            clauses.append("applied=?")
            params.append(int(applied))
        if search_text:
            clauses.append("instr(search_text, ?) > 0")
            params.append(search_text.lower())
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(f"SELECT * FROM jobs{where} ORDER BY id", params).fetchall()
        return [_row_to_job(row) for row in rows]

    def list_jobs(self) -> list[StoredJob]:
        rows = self.conn.execute("SELECT * FROM jobs ORDER BY last_updated DESC, id DESC").fetchall()
        return [_row_to_job(row) for row in rows]

    def get_job_stats(self) -> dict[str, object]:
        total = self.conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]
        applied = self.conn.execute("SELECT COUNT(*) FROM jobs WHERE applied=1").fetchone()[0]
        by_status = {
            row["status"] or "unknown": row["n"]
            for row in self.conn.execute("SELECT status, COUNT(*) AS n FROM jobs GROUP BY status")
        }
        return {"total": total, "applied": applied, "not_applied": total - applied, "by_status": by_status}

    def create_run(self, started_at: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO runs(started_at, finished_at, num_scraped, num_created, num_updated, num_skipped, num_failed) VALUES (?,?,?,?,?,?,?)",
            (started_at, started_at, 0, 0, 0, 0, 0),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def finish_run(self, run_id: int, finished_at: str, counts: dict[str, int]) -> None:
        self.conn.execute(
            "UPDATE runs SET finished_at=?, num_scraped=?, num_created=?, num_updated=?, num_skipped=?, num_failed=? WHERE run_id=?",
            (
                finished_at,
                counts.get("scraped", 0),
                counts.get("created", 0),
                counts.get("updated", 0),
                counts.get("skipped", 0),
                counts.get("failed", 0),
                run_id,
            ),
        )
        self.conn.commit()

    def add_run_error(self, run_id: int, source: str, reason: str, trace_summary: str = "") -> None:
        self.conn.execute(
            "INSERT INTO run_errors VALUES (?,?,?,?)",
            (run_id, source, reason, trace_summary),
        )
        self.conn.commit()

    def list_runs(self) -> list[sqlite3.Row]:
        return self.conn.execute("SELECT * FROM runs ORDER BY run_id DESC").fetchall()

    def list_failures(self) -> list[sqlite3.Row]:
        return self.conn.execute("SELECT * FROM run_errors ORDER BY run_id DESC").fetchall()

    def close(self) -> None:
        self.conn.close()


def _posting_values(job: JobPosting) -> tuple[object, ...]:
    return (
        job.title,
        job.company,
        job.location,
        job.apply_link,
        job.posted_date.isoformat(),
        job.salary,
        json.dumps(list(job.tags)),
        job.status,
        int(job.applied),
        job.source,
        job.source_id,
        job.date_scraped.isoformat(),
        job.last_updated.isoformat(),
        job.search_text,
    )


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: sqlite3.Row) -> StoredJob:
    return StoredJob(
        id=int(row["id"]),
        title=row["title"],
        company=row["company"],
        location=row["location"] or "",
        apply_link=row["apply_link"],
        posted_date=_parse_timestamp(row["posted_date"]) or utc_now(),
        source=row["source"] or "",
        source_id=row["source_id"],
        salary=row["salary"],
        tags=json.loads(row["tags"] or "[]"),
        status=row["status"] or STATUS_ACTIVE,
        applied=bool(row["applied"]),
        date_scraped=_parse_timestamp(row["date_scraped"]),
        last_updated=_parse_timestamp(row["last_updated"]),
        search_text=row["search_text"] or "",
    )
