from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Achievement, Course, LearnerAchievement, Lesson, Progress, QuizResult
from .notifications import notify
from .schemas import AchievementOut, LearnerAchievementOut, LearnerAchievementsSummary, AchievementStatus
from .scoring import round_half_up


logger = logging.getLogger(__name__)


class AggregateSnapshot(BaseModel):
    """Per-learner counters shared by every achievement rule in one evaluation pass."""

    learner_id: str
    lessons_completed: int = 0
    quizzes_passed: int = 0
    courses_completed: int = 0
    time_spent: int = 0
    perfect_quizzes: int = 0

    def counter_for(self, requirement_type: str) -> Optional[int]:
        return {
            "lessons_completed": self.lessons_completed,
            "quizzes_passed": self.quizzes_passed,
            "courses_completed": self.courses_completed,
            "time_spent": self.time_spent,
            "perfect_quiz": self.perfect_quizzes,
        }.get(requirement_type)


def count_completed_courses(db: Session, learner_id: str) -> int:
    lesson_totals = dict(
        db.execute(
            select(Lesson.course_id, func.count(Lesson.id))
            .join(Course, Course.id == Lesson.course_id)
            .where(Course.is_published.is_(True))
            .group_by(Lesson.course_id)
        ).all()
    )
    completed_by_course = dict(
        db.execute(
            select(Progress.course_id, func.count(Progress.id))
            .where(Progress.learner_id == learner_id, Progress.completed.is_(True))
            .group_by(Progress.course_id)
        ).all()
    )
    return sum(
        1
        for course_id, total in lesson_totals.items()
        if total > 0 and completed_by_course.get(course_id, 0) == total
    )


def build_snapshot(db: Session, learner_id: str) -> AggregateSnapshot:
    lessons, minutes = db.execute(
        select(func.count(Progress.id), func.coalesce(func.sum(Progress.time_spent), 0)).where(
            Progress.learner_id == learner_id, Progress.completed.is_(True)
        )
    ).one()
    passed, perfect = db.execute(
        select(
            func.count(QuizResult.id),
            func.coalesce(func.sum(case((QuizResult.percentage == 100, 1), else_=0)), 0),
        ).where(QuizResult.learner_id == learner_id, QuizResult.passed.is_(True))
    ).one()
    return AggregateSnapshot(
        learner_id=learner_id,
        lessons_completed=int(lessons or 0),
        quizzes_passed=int(passed or 0),
        courses_completed=count_completed_courses(db, learner_id),
        time_spent=int(minutes or 0),
        perfect_quizzes=int(perfect or 0),
    )


def progress_for(learner_id: str, achievement: Achievement, snapshot: AggregateSnapshot) -> int:
    """Return the learner's 0-100 progress towards ``achievement``.

    ``custom`` rules and types without a counter (e.g. ``streak_days``) have
    no generic evaluation and report 0. A target below 1 is a data error in the
    catalog; it is logged and reported as 0 instead of raising.
    """
    current = snapshot.counter_for(achievement.requirement_type)
    if current is None:
        return 0
    target = achievement.requirement_value or 0
    if target < 1:
        logger.warning(
            "Achievement %s has invalid requirement value %r; reporting 0 progress for %s",
            achievement.id,
            achievement.requirement_value,
            learner_id,
        )
        return 0
    return min(100, round_half_up(100 * current / target))


def _ensure_state(db: Session, learner_id: str, achievement_id: str) -> None:
    exists = db.scalar(
        select(LearnerAchievement.id).where(
            LearnerAchievement.learner_id == learner_id,
            LearnerAchievement.achievement_id == achievement_id,
        )
    )
    if exists:
        return
    try:
        db.add(LearnerAchievement(learner_id=learner_id, achievement_id=achievement_id, progress=0))
        db.flush()
    except IntegrityError:
        # A concurrent evaluation inserted the row first
        db.rollback()


def _latch_unlock(db: Session, learner_id: str, achievement_id: str, now: datetime) -> bool:
    _ensure_state(db, learner_id, achievement_id)
    res = db.execute(
        update(LearnerAchievement)
        .where(
            LearnerAchievement.learner_id == learner_id,
            LearnerAchievement.achievement_id == achievement_id,
            LearnerAchievement.unlocked_at.is_(None),
        )
        .values(progress=100, unlocked_at=now, updated_at=now)
    )
    return (res.rowcount or 0) == 1


def _record_progress(db: Session, learner_id: str, achievement_id: str, progress: int, now: datetime) -> None:
    _ensure_state(db, learner_id, achievement_id)
    db.execute(
        update(LearnerAchievement)
        .where(
            LearnerAchievement.learner_id == learner_id,
            LearnerAchievement.achievement_id == achievement_id,
            LearnerAchievement.unlocked_at.is_(None),
            LearnerAchievement.progress < progress,
        )
        .values(progress=progress, updated_at=now)
    )


def _unlocked_ids(db: Session, learner_id: str) -> set:
    return set(
        db.scalars(
            select(LearnerAchievement.achievement_id).where(
                LearnerAchievement.learner_id == learner_id,
                LearnerAchievement.unlocked_at.is_not(None),
            )
        )
    )


def active_achievements(db: Session) -> List[Achievement]:
    return list(db.scalars(select(Achievement).where(Achievement.is_active.is_(True)).order_by(Achievement.points.desc())))


def evaluate_all(db: Session, learner_id: str, *, now: Optional[datetime] = None) -> List[Achievement]:
    """Evaluate the active catalog for one learner and return what this call unlocked.

    Unlocked pairs are skipped without recomputing progress. Each achievement
    is committed on its own, so a failure on one is logged and the rest of the
    catalog is still evaluated.
    """
    now = now or datetime.utcnow()
    unlocked = _unlocked_ids(db, learner_id)
    pending = [a for a in active_achievements(db) if a.id not in unlocked]
    if not pending:
        return []

    snapshot = build_snapshot(db, learner_id)
    newly_unlocked: List[Achievement] = []
    for achievement in pending:
        achievement_id = achievement.id
        try:
            progress = progress_for(learner_id, achievement, snapshot)
            if progress >= 100:
                if _latch_unlock(db, learner_id, achievement_id, now):
                    notify(
                        db,
                        learner_id,
                        "achievement",
                        "New achievement! 🏆",
                        f'You earned the achievement "{achievement.title}"! {achievement.description}'.strip(),
                        link="/achievements",
                    )
                    db.commit()
                    newly_unlocked.append(achievement)
                    logger.info("Learner %s unlocked achievement %s", learner_id, achievement_id)
                else:
                    db.commit()
            else:
                _record_progress(db, learner_id, achievement_id, progress, now)
                db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist achievement %s for learner %s", achievement_id, learner_id)
    return newly_unlocked


def achievement_overview(db: Session, learner_id: str) -> List[AchievementStatus]:
    states: Dict[str, LearnerAchievement] = {
        row.achievement_id: row
        for row in db.scalars(select(LearnerAchievement).where(LearnerAchievement.learner_id == learner_id))
    }
    achievements = active_achievements(db)
    snapshot: Optional[AggregateSnapshot] = None
    out: List[AchievementStatus] = []
    for achievement in achievements:
        state = states.get(achievement.id)
        if state is not None and state.unlocked_at is not None:
            progress = state.progress or 100
        else:
            if snapshot is None:
                snapshot = build_snapshot(db, learner_id)
            progress = progress_for(learner_id, achievement, snapshot)
        base = AchievementOut.model_validate(achievement).model_dump()
        out.append(
            AchievementStatus(
                **base,
                unlocked=bool(state is not None and state.unlocked_at is not None),
                unlocked_at=state.unlocked_at if state is not None else None,
                progress=progress,
            )
        )
    return out


def learner_achievements(db: Session, learner_id: str) -> LearnerAchievementsSummary:
    rows = db.execute(
        select(LearnerAchievement, Achievement)
        .join(Achievement, Achievement.id == LearnerAchievement.achievement_id)
        .where(LearnerAchievement.learner_id == learner_id)
        .order_by(LearnerAchievement.unlocked_at.desc())
    ).all()
    unlocked: List[LearnerAchievementOut] = []
    in_progress: List[LearnerAchievementOut] = []
    total_points = 0
    for state, achievement in rows:
        item = LearnerAchievementOut(
            achievement=AchievementOut.model_validate(achievement),
            progress=state.progress,
            unlocked_at=state.unlocked_at,
        )
        if state.unlocked_at is not None:
            unlocked.append(item)
            total_points += achievement.points or 0
        else:
            in_progress.append(item)
    return LearnerAchievementsSummary(
        unlocked=unlocked,
        in_progress=in_progress,
        total_points=total_points,
        total_unlocked=len(unlocked),
    )
