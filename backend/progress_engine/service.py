from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .achievements import evaluate_all
from .certificates import check_and_issue
from .completion import can_complete
from .db import session_factory_for
from .errors import EngineError, InputError, NotFoundError
from .models import Achievement, Certificate, Course, Lesson, Progress, Quiz, QuizResult, Submission
from .schemas import (
    LearningStats,
    LessonCompletion,
    ProgressOut,
    QuestionReview,
    QuizDefinition,
    QuizSubmissionResult,
    RawAnswer,
)
from .scoring import grade
from .settings import settings


logger = logging.getLogger(__name__)

# schedule(func, *args): runs func(*args) now or later, e.g. BackgroundTasks.add_task
Schedule = Callable[..., Any]


def run_isolated(job: Callable[..., Any], *args: Any) -> None:
    try:
        job(*args)
    except Exception:
        logger.exception("Side effect %s failed for %r", getattr(job, "__name__", job), args)


def _run_now(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


def _dispatch(schedule: Optional[Schedule], job: Callable[..., Any], *args: Any) -> None:
    (schedule or _run_now)(run_isolated, job, *args)


# ---- Background jobs: each opens its own session and only talks through persisted rows ----

def achievements_job(session_factory: sessionmaker, learner_id: str) -> None:
    db = session_factory()
    try:
        unlocked = evaluate_all(db, learner_id)
        if unlocked:
            logger.info("Learner %s unlocked %d achievement(s)", learner_id, len(unlocked))
    finally:
        db.close()


def certificate_job(session_factory: sessionmaker, learner_id: str, course_id: str) -> None:
    db = session_factory()
    try:
        check_and_issue(db, learner_id, course_id)
    finally:
        db.close()


# ---- Quiz submission ----

def load_quiz(db: Session, quiz_id: str) -> Tuple[Quiz, QuizDefinition]:
    quiz = db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    if not quiz.is_published:
        raise InputError("Quiz is not available")
    try:
        definition = QuizDefinition.model_validate(
            {
                "id": quiz.id,
                "title": quiz.title,
                "passing_score": quiz.passing_score if quiz.passing_score is not None else settings.default_passing_score,
                "questions": quiz.questions or [],
            }
        )
    except ValidationError as e:
        raise EngineError(f"Quiz {quiz_id} has a malformed definition: {e}") from e
    if not definition.questions:
        raise InputError("Quiz has no questions")
    return quiz, definition


def submit_quiz(
    db: Session,
    quiz_id: str,
    learner_id: str,
    answers: Sequence[RawAnswer],
    time_spent: Optional[int] = None,
    *,
    schedule: Optional[Schedule] = None,
) -> QuizSubmissionResult:
    """Grade and store one quiz attempt.

    Every attempt produces its own QuizResult. A passed attempt schedules an
    achievement evaluation for the learner; its outcome never affects the
    returned result.
    """
    if not isinstance(answers, (list, tuple)):
        raise InputError("Answers must be a list")
    quiz, definition = load_quiz(db, quiz_id)
    if len(answers) != len(definition.questions):
        raise InputError(f"Expected {len(definition.questions)} answers, got {len(answers)}")

    result = grade(definition, list(answers))
    row = QuizResult(
        learner_id=learner_id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        answers=[o.model_dump() for o in result.answers],
        score=result.score,
        max_score=result.max_score,
        percentage=result.percentage,
        passed=result.passed,
        time_spent=time_spent,
        completed_at=datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    logger.info(
        "Learner %s scored %d/%d (%d%%) on quiz %s", learner_id, result.score, result.max_score, result.percentage, quiz.id
    )

    if result.passed:
        _dispatch(schedule, achievements_job, session_factory_for(db), learner_id)

    return QuizSubmissionResult(
        result_id=row.id,
        score=result.score,
        max_score=result.max_score,
        percentage=result.percentage,
        passed=result.passed,
        answers=result.answers,
        review=[
            QuestionReview(
                question_id=q.id,
                question=q.question,
                correct_answers=q.correct_answers,
                explanation=q.explanation,
            )
            for q in definition.questions
        ],
    )


# ---- Lesson completion ----

def submitted_exercise_indices(db: Session, learner_id: str, lesson_id: str) -> Set[int]:
    return set(
        db.scalars(
            select(Submission.exercise_index)
            .where(
                Submission.learner_id == learner_id,
                Submission.lesson_id == lesson_id,
                Submission.exercise_index.is_not(None),
            )
            .distinct()
        )
    )


def _find_progress(db: Session, learner_id: str, lesson_id: str) -> Optional[Progress]:
    return db.scalar(select(Progress).where(Progress.learner_id == learner_id, Progress.lesson_id == lesson_id))


def _mark_completed(db: Session, lesson: Lesson, learner_id: str, time_spent: int) -> Tuple[Progress, bool]:
    # Returns the record and whether this call performed the first completion
    now = datetime.utcnow()
    row = _find_progress(db, learner_id, lesson.id)
    if row is not None and row.completed:
        return row, False
    if row is None:
        row = Progress(
            learner_id=learner_id,
            course_id=lesson.course_id,
            lesson_id=lesson.id,
            completed=True,
            completed_at=now,
            time_spent=time_spent,
        )
        try:
            db.add(row)
            db.commit()
            return row, True
        except IntegrityError:
            db.rollback()
            row = _find_progress(db, learner_id, lesson.id)
            if row is None:
                raise
            if row.completed:
                return row, False

    res = db.execute(
        update(Progress)
        .where(Progress.id == row.id, Progress.completed.is_(False))
        .values(completed=True, completed_at=now, time_spent=time_spent, updated_at=now)
    )
    db.commit()
    db.refresh(row)
    return row, (res.rowcount or 0) == 1


def complete_lesson(
    db: Session,
    lesson_id: str,
    learner_id: str,
    time_spent: int = 0,
    *,
    schedule: Optional[Schedule] = None,
) -> LessonCompletion:
    """Mark a lesson complete once every practical exercise has a submission.

    A missing submission is an ordinary outcome reported through
    ``missing_indices``. Completing an already completed lesson returns the
    stored record unchanged. The first completion schedules achievement
    evaluation and certificate issuance for the lesson's course.
    """
    lesson = db.get(Lesson, lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson not found")
    if db.get(Course, lesson.course_id) is None:
        raise NotFoundError("Course not found")

    decision = can_complete(lesson.exercises or [], submitted_exercise_indices(db, learner_id, lesson.id))
    if not decision.allowed:
        logger.info(
            "Learner %s cannot complete lesson %s: practical exercises %s missing",
            learner_id,
            lesson.id,
            decision.missing_positions,
        )
        return LessonCompletion(
            completed=False,
            missing_indices=decision.missing_indices,
            missing_positions=decision.missing_positions,
        )

    course_id = lesson.course_id
    record, first = _mark_completed(db, lesson, learner_id, max(0, int(time_spent or 0)))
    progress = ProgressOut.model_validate(record)
    if first:
        factory = session_factory_for(db)
        _dispatch(schedule, achievements_job, factory, learner_id)
        _dispatch(schedule, certificate_job, factory, learner_id, course_id)
    return LessonCompletion(completed=True, progress=progress)


def lesson_progress(db: Session, learner_id: str, lesson_id: str) -> Optional[Progress]:
    return _find_progress(db, learner_id, lesson_id)


def list_progress(db: Session, learner_id: str) -> List[Progress]:
    stmt = select(Progress).where(Progress.learner_id == learner_id).order_by(Progress.updated_at.desc())
    return list(db.scalars(stmt))


def quiz_results(db: Session, learner_id: str, quiz_id: str, limit: int = 10) -> List[QuizResult]:
    """Most recent attempts first."""
    stmt = (
        select(QuizResult)
        .where(QuizResult.learner_id == learner_id, QuizResult.quiz_id == quiz_id)
        .order_by(QuizResult.completed_at.desc(), QuizResult.created_at.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


# ---- Direct entry points ----

def evaluate_achievements(db: Session, learner_id: str) -> List[Achievement]:
    return evaluate_all(db, learner_id)


def issue_certificate_if_eligible(db: Session, learner_id: str, course_id: str) -> Optional[Certificate]:
    return check_and_issue(db, learner_id, course_id)


def learning_stats(db: Session, learner_id: str) -> LearningStats:
    lessons, minutes = db.execute(
        select(func.count(Progress.id), func.coalesce(func.sum(Progress.time_spent), 0)).where(
            Progress.learner_id == learner_id, Progress.completed.is_(True)
        )
    ).one()
    started = db.scalar(
        select(func.count(func.distinct(Progress.course_id))).where(Progress.learner_id == learner_id)
    )
    total_courses = db.scalar(select(func.count(Course.id)).where(Course.is_published.is_(True)))
    return LearningStats(
        total_courses=int(total_courses or 0),
        courses_started=int(started or 0),
        total_lessons_completed=int(lessons or 0),
        total_time_spent=int(minutes or 0),
    )
