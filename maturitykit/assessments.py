"""Storage of maturity assessments, their responses and their section scores."""

from __future__ import annotations

import json
import secrets
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable


class AssessmentStatus(str, Enum):
    """Lifecycle state of an assessment."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AssessmentError(Exception):
    """Raised when an assessment operation fails."""


class AssessmentNotFound(AssessmentError, LookupError):
    """Raised when no assessment matches the lookup."""

    def __init__(self, message: str = "assessment not found") -> None:
        super().__init__(message)


class InvalidStatus(AssessmentError, ValueError):
    """Raised when an assessment carries an unknown status."""

    def __init__(self, message: str = "invalid assessment status") -> None:
        super().__init__(message)


@dataclass
class Response:
    """The answers given to one survey question."""

    assessment_id: int
    question_id: str
    answer_ids: list[str] = field(default_factory=list)
    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class SectionScore:
    """The score reached in one survey section."""

    assessment_id: int
    section_name: str
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Assessment:
    """A maturity assessment taken by a team."""

    team_id: int
    created_by: int
    session_id: str = ""
    status: AssessmentStatus | str = AssessmentStatus.IN_PROGRESS
    id: int = 0
    created_at: datetime | None = None
    completed_at: datetime | None = None
    team: Any = None
    creator: Any = None
    responses: list[Response] = field(default_factory=list)
    section_scores: list[SectionScore] = field(default_factory=list)


def generate_session_id() -> str:
    """Return a new random session identifier."""
    return secrets.token_hex(16)


def _to_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    return datetime.fromisoformat(str(value))


def _validated_status(status: AssessmentStatus | str) -> AssessmentStatus:
    if status in ("", None):
        return AssessmentStatus.IN_PROGRESS
    try:
        return AssessmentStatus(status)
    except ValueError:
        raise InvalidStatus() from None


_ASSESSMENT_COLUMNS = (
    "id, team_id, created_by, session_id, status, created_at, completed_at"
)


def _assessment_from_row(row: tuple) -> Assessment:
    ident, team_id, created_by, session_id, status, created_at, completed_at = row
    return Assessment(
        id=ident,
        team_id=team_id,
        created_by=created_by,
        session_id=session_id,
        status=AssessmentStatus(status),
        created_at=_to_datetime(created_at),
        completed_at=_to_datetime(completed_at),
    )


class AssessmentService:
    """Database operations on assessments, responses and section scores.

    ``db`` is an SQLite connection holding the ``assessments``,
    ``responses`` and ``section_scores`` tables.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def _fetch_one(self, query: str, params: Iterable[Any], what: str) -> tuple | None:
        try:
            return self._db.execute(query, tuple(params)).fetchone()
        except sqlite3.Error as exc:
            raise AssessmentError(f"failed to {what}: {exc}") from exc

    def _fetch_all(self, query: str, params: Iterable[Any], what: str) -> list[tuple]:
        try:
            return self._db.execute(query, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise AssessmentError(f"failed to {what}: {exc}") from exc

    def _write(self, query: str, params: Iterable[Any], what: str) -> sqlite3.Cursor:
        try:
            with self._db:
                return self._db.execute(query, tuple(params))
        except sqlite3.Error as exc:
            raise AssessmentError(f"failed to {what}: {exc}") from exc

    def create_assessment(self, assessment: Assessment) -> Assessment:
        """Store a new assessment and return it as stored, with its timestamps."""
        status = _validated_status(assessment.status)
        session_id = assessment.session_id or generate_session_id()
        cursor = self._write(
            "INSERT INTO assessments (team_id, created_by, session_id, status) "
            "VALUES (?, ?, ?, ?)",
            (assessment.team_id, assessment.created_by, session_id, status.value),
            "create assessment",
        )
        return self.get_assessment(cursor.lastrowid)

    def get_assessment(self, assessment_id: int) -> Assessment:
        """Return the assessment with the given id."""
        row = self._fetch_one(
            f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments WHERE id = ?",
            (assessment_id,),
            "get assessment",
        )
        if row is None:
            raise AssessmentNotFound()
        return _assessment_from_row(row)

    def get_assessment_by_session(self, session_id: str) -> Assessment:
        """Return the assessment with the given session id."""
        row = self._fetch_one(
            f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments WHERE session_id = ?",
            (session_id,),
            "get assessment",
        )
        if row is None:
            raise AssessmentNotFound()
        return _assessment_from_row(row)

    def save_response(self, response: Response) -> None:
        """Insert a response, or replace the answers of an existing one."""
        answers = json.dumps(list(response.answer_ids))
        self._write(
            "INSERT INTO responses (assessment_id, question_id, answer_ids) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT (assessment_id, question_id) DO UPDATE SET "
            "answer_ids = excluded.answer_ids, updated_at = CURRENT_TIMESTAMP",
            (response.assessment_id, response.question_id, answers),
            "save response",
        )

    def get_responses(self, assessment_id: int) -> list[Response]:
        """Return the responses of an assessment, ordered by question id."""
        rows = self._fetch_all(
            "SELECT id, assessment_id, question_id, answer_ids, created_at, updated_at "
            "FROM responses WHERE assessment_id = ? ORDER BY question_id",
            (assessment_id,),
            "get responses",
        )
        responses = []
        for ident, owner, question_id, answers, created_at, updated_at in rows:
            try:
                answer_ids = json.loads(answers)
            except (TypeError, ValueError) as exc:
                raise AssessmentError(f"failed to unmarshal answer IDs: {exc}") from exc
            responses.append(
                Response(
                    id=ident,
                    assessment_id=owner,
                    question_id=question_id,
                    answer_ids=list(answer_ids or []),
                    created_at=_to_datetime(created_at),
                    updated_at=_to_datetime(updated_at),
                )
            )
        return responses

    def save_section_score(self, score: SectionScore) -> None:
        """Insert a section score, or replace the values of an existing one."""
        self._write(
            "INSERT INTO section_scores "
            "(assessment_id, section_name, score, max_score, percentage) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT (assessment_id, section_name) DO UPDATE SET "
            "score = excluded.score, max_score = excluded.max_score, "
            "percentage = excluded.percentage, updated_at = CURRENT_TIMESTAMP",
            (
                score.assessment_id,
                score.section_name,
                score.score,
                score.max_score,
                score.percentage,
            ),
            "save section score",
        )

    def get_scores(self, assessment_id: int) -> list[SectionScore]:
        """Return the section scores of an assessment, ordered by section name."""
        rows = self._fetch_all(
            "SELECT id, assessment_id, section_name, score, max_score, percentage, "
            "created_at, updated_at FROM section_scores "
            "WHERE assessment_id = ? ORDER BY section_name",
            (assessment_id,),
            "get section scores",
        )
        return [
            SectionScore(
                id=ident,
                assessment_id=owner,
                section_name=name,
                score=float(score),
                max_score=float(max_score),
                percentage=float(percentage),
                created_at=_to_datetime(created_at),
                updated_at=_to_datetime(updated_at),
            )
            for ident, owner, name, score, max_score, percentage, created_at, updated_at in rows
        ]

    def complete_assessment(self, assessment_id: int) -> None:
        """Mark an in-progress assessment as completed."""
        cursor = self._write(
            "UPDATE assessments SET status = ?, completed_at = CURRENT_TIMESTAMP "
            "WHERE id = ? AND status = ?",
            (
                AssessmentStatus.COMPLETED.value,
                assessment_id,
                AssessmentStatus.IN_PROGRESS.value,
            ),
            "complete assessment",
        )
        if cursor.rowcount == 0:
            raise AssessmentError("assessment not found or already completed")

    def delete_assessment(self, assessment_id: int) -> None:
        """Delete an assessment; related rows go with it through the schema."""
        cursor = self._write(
            "DELETE FROM assessments WHERE id = ?",
            (assessment_id,),
            "delete assessment",
        )
        if cursor.rowcount == 0:
            raise AssessmentNotFound()

    def list_team_assessments(
        self, team_id: int, include_in_progress: bool
    ) -> list[Assessment]:
        """Return a team's assessments, newest first."""
        query = f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments WHERE team_id = ?"
        params: list[Any] = [team_id]
        if not include_in_progress:
            query += " AND status = ?"
            params.append(AssessmentStatus.COMPLETED.value)
        query += " ORDER BY created_at DESC, id DESC"
        rows = self._fetch_all(query, params, "list team assessments")
        return [_assessment_from_row(row) for row in rows]

    def list_user_assessments(
        self, user_id: int, offset: int, limit: int
    ) -> tuple[list[Assessment], int]:
        """Return one page of a user's assessments, newest first, and their total."""
        (total,) = self._fetch_one(
            "SELECT COUNT(*) FROM assessments WHERE created_by = ?",
            (user_id,),
            "get assessment count",
        )
        rows = self._fetch_all(
            f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments WHERE created_by = ? "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (user_id, limit, offset),
            "list user assessments",
        )
        return [_assessment_from_row(row) for row in rows], total

    def latest_team_assessment(self, team_id: int) -> Assessment:
        """Return the most recently completed assessment of a team."""
        row = self._fetch_one(
            f"SELECT {_ASSESSMENT_COLUMNS} FROM assessments "
            "WHERE team_id = ? AND status = ? "
            "ORDER BY completed_at DESC, id DESC LIMIT 1",
            (team_id, AssessmentStatus.COMPLETED.value),
            "get latest assessment",
        )
        if row is None:
            raise AssessmentNotFound()
        return _assessment_from_row(row)