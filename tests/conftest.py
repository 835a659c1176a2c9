from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from progress_engine import models
from progress_engine.db import Base


@pytest.fixture
def engine():
    # One shared in-memory connection so background sessions see the same data
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class Factory:
    """Builds collaborator-owned rows (courses, lessons, quizzes, evidence) for tests."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _save(self, row: Any) -> Any:
        self.db.add(row)
        self.db.commit()
        return row

    def course(self, title: str = "Networking basics", published: bool = True) -> models.Course:
        return self._save(models.Course(title=title, is_published=published))

    def lesson(self, course: models.Course, exercises: list | None = None, order: int = 0) -> models.Lesson:
        return self._save(
            models.Lesson(course_id=course.id, title=f"Lesson {order}", order=order, exercises=exercises or [])
        )

    def quiz(
        self,
        course: models.Course,
        questions: list[dict],
        passing_score: int = 70,
        published: bool = True,
    ) -> models.Quiz:
        return self._save(
            models.Quiz(
                course_id=course.id,
                title="Quiz",
                passing_score=passing_score,
                is_published=published,
                questions=questions,
            )
        )

    def achievement(
        self,
        requirement_type: str,
        value: int,
        title: str | None = None,
        points: int = 10,
        active: bool = True,
    ) -> models.Achievement:
        return self._save(
            models.Achievement(
                title=title or f"{requirement_type} x{value}",
                description=f"Reach {value}",
                category="special",
                requirement_type=requirement_type,
                requirement_value=value,
                points=points,
                is_active=active,
            )
        )

    def completed(self, learner_id: str, lesson: models.Lesson, time_spent: int = 0) -> models.Progress:
        return self._save(
            models.Progress(
                learner_id=learner_id,
                course_id=lesson.course_id,
                lesson_id=lesson.id,
                completed=True,
                completed_at=datetime.utcnow(),
                time_spent=time_spent,
            )
        )

    def quiz_result(self, learner_id: str, quiz: models.Quiz, percentage: int, passed: bool) -> models.QuizResult:
        return self._save(
            models.QuizResult(
                learner_id=learner_id,
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                answers=[],
                score=percentage,
                max_score=100,
                percentage=percentage,
                passed=passed,
            )
        )

    def submission(self, learner_id: str, lesson: models.Lesson, exercise_index: int | None) -> models.Submission:
        return self._save(
            models.Submission(
                learner_id=learner_id,
                course_id=lesson.course_id,
                lesson_id=lesson.id,
                exercise_index=exercise_index,
                file_url=f"/uploads/{lesson.id}-{exercise_index}.zip",
                file_name="work.zip",
            )
        )


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)
