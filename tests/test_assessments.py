import sqlite3
from datetime import datetime

import pytest

from maturitykit.assessments import (
    Assessment,
    AssessmentError,
    AssessmentNotFound,
    AssessmentService,
    AssessmentStatus,
    InvalidStatus,
    Response,
    SectionScore,
    generate_session_id,
)

SCHEMA = """
CREATE TABLE assessments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    team_id INTEGER NOT NULL,
    created_by INTEGER NOT NULL,
    session_id TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    completed_at TIMESTAMP NULL
);
CREATE TABLE responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL,
    answer_ids TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (assessment_id, question_id)
);
CREATE TABLE section_scores (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
    section_name TEXT NOT NULL,
    score REAL NOT NULL,
    max_score REAL NOT NULL,
    percentage REAL NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (assessment_id, section_name)
);
"""


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def service(db):
    return AssessmentService(db)


def test_create_defaults_status_and_session(service):
    created = service.create_assessment(Assessment(team_id=3, created_by=7, status=""))
    assert created.id > 0
    assert created.status == AssessmentStatus.IN_PROGRESS
    assert created.status == "in_progress"
    assert created.session_id
    assert isinstance(created.created_at, datetime)
    assert created.completed_at is None
    assert (created.team_id, created.created_by) == (3, 7)


def test_create_keeps_given_session_and_completed_status(service):
    created = service.create_assessment(
        Assessment(team_id=1, created_by=2, session_id="abc", status="completed")
    )
    assert created.session_id == "abc"
    assert created.status == AssessmentStatus.COMPLETED


def test_create_rejects_unknown_status(service):
    with pytest.raises(InvalidStatus):
        service.create_assessment(Assessment(team_id=1, created_by=1, status="bogus"))


def test_get_missing_raises(service):
    with pytest.raises(AssessmentNotFound):
        service.get_assessment(99)
    with pytest.raises(AssessmentNotFound):
        service.get_assessment_by_session("nothing")


def test_get_by_session_round_trip(service):
    created = service.create_assessment(Assessment(team_id=5, created_by=6))
    found = service.get_assessment_by_session(created.session_id)
    assert found.id == created.id
    assert found == service.get_assessment(created.id)


def test_save_response_round_trip_and_upsert(service):
    a = service.create_assessment(Assessment(team_id=1, created_by=1))
    service.save_response(Response(a.id, "S1-Q2", ["S1-Q2-A1"]))
    service.save_response(Response(a.id, "S1-Q1", ["S1-Q1-A1", "S1-Q1-A3"]))
    service.save_response(Response(a.id, "S1-Q2", ["S1-Q2-A2"]))
    responses = service.get_responses(a.id)
    assert [r.question_id for r in responses] == ["S1-Q1", "S1-Q2"]
    assert responses[0].answer_ids == ["S1-Q1-A1", "S1-Q1-A3"]
    assert responses[1].answer_ids == ["S1-Q2-A2"]
    assert all(r.assessment_id == a.id for r in responses)


def test_corrupt_answer_json_raises(service, db):
    a = service.create_assessment(Assessment(team_id=1, created_by=1))
    with db:
        db.execute(
            "INSERT INTO responses (assessment_id, question_id, answer_ids) VALUES (?, ?, ?)",
            (a.id, "S1-Q1", "not json"),
        )
    with pytest.raises(AssessmentError):
        service.get_responses(a.id)


def test_section_scores_upsert_and_order(service):
    a = service.create_assessment(Assessment(team_id=1, created_by=1))
    service.save_section_score(SectionScore(a.id, "Testing", 1.0, 4.0, 25.0))
    service.save_section_score(SectionScore(a.id, "Culture", 2.0, 2.0, 100.0))
    service.save_section_score(SectionScore(a.id, "Testing", 3.0, 4.0, 75.0))
    scores = service.get_scores(a.id)
    assert [s.section_name for s in scores] == ["Culture", "Testing"]
    assert (scores[1].score, scores[1].max_score, scores[1].percentage) == (3.0, 4.0, 75.0)


def test_complete_assessment_once(service):
    a = service.create_assessment(Assessment(team_id=1, created_by=1))
    service.complete_assessment(a.id)
    done = service.get_assessment(a.id)
    assert done.status == AssessmentStatus.COMPLETED
    assert isinstance(done.completed_at, datetime)
    with pytest.raises(AssessmentError):
        service.complete_assessment(a.id)


def test_complete_missing_raises(service):
    with pytest.raises(AssessmentError):
        service.complete_assessment(42)


def test_delete_cascades_and_missing_raises(service):
    a = service.create_assessment(Assessment(team_id=1, created_by=1))
    service.save_response(Response(a.id, "S1-Q1", ["S1-Q1-A1"]))
    service.delete_assessment(a.id)
    with pytest.raises(AssessmentNotFound):
        service.get_assessment(a.id)
    assert service.get_responses(a.id) == []
    with pytest.raises(AssessmentNotFound):
        service.delete_assessment(a.id)


def test_list_team_assessments_filters_in_progress(service):
    first = service.create_assessment(Assessment(team_id=8, created_by=1))
    second = service.create_assessment(Assessment(team_id=8, created_by=1))
    service.create_assessment(Assessment(team_id=9, created_by=1))
    service.complete_assessment(first.id)
    completed = service.list_team_assessments(8, False)
    assert [x.id for x in completed] == [first.id]
    everything = service.list_team_assessments(8, True)
    assert {x.id for x in everything} == {first.id, second.id}


def test_list_user_assessments_paginates(service):
    ids = [service.create_assessment(Assessment(team_id=1, created_by=4)).id for _ in range(3)]
    service.create_assessment(Assessment(team_id=1, created_by=5))
    page, total = service.list_user_assessments(4, 0, 2)
    rest, total_again = service.list_user_assessments(4, 2, 2)
    assert total == total_again == len(ids)
    assert len(page) == 2
    assert {x.id for x in page + rest} == set(ids)


def test_latest_team_assessment(service):
    with pytest.raises(AssessmentNotFound):
        service.latest_team_assessment(2)
    a = service.create_assessment(Assessment(team_id=2, created_by=1))
    with pytest.raises(AssessmentNotFound):
        service.latest_team_assessment(2)
    service.complete_assessment(a.id)
    assert service.latest_team_assessment(2).id == a.id


def test_generate_session_id_unique():
    ids = {generate_session_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(ids)