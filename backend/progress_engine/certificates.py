from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import EngineError, NotFoundError
from .models import Certificate, Course, Lesson, Progress, QuizResult
from .notifications import notify
from .scoring import round_half_up
from .settings import settings


logger = logging.getLogger(__name__)


def generate_certificate_number(prefix: Optional[str] = None) -> str:
    # Microsecond timestamp plus a random suffix; uniqueness is still enforced by the table
    stamp = time.time_ns() // 1000
    suffix = f"{secrets.randbelow(1_000_000):06d}"
    return f"{prefix or settings.certificate_prefix}-{stamp}-{suffix}"


def find_certificate(db: Session, learner_id: str, course_id: str) -> Optional[Certificate]:
    return db.scalar(
        select(Certificate).where(Certificate.learner_id == learner_id, Certificate.course_id == course_id)
    )


def course_grade(db: Session, learner_id: str, course_id: str) -> Optional[int]:
    percentages = list(
        db.scalars(
            select(QuizResult.percentage).where(
                QuizResult.learner_id == learner_id,
                QuizResult.course_id == course_id,
                QuizResult.passed.is_(True),
            )
        )
    )
    if not percentages:
        return None
    return round_half_up(sum(percentages) / len(percentages))


def _course_is_complete(db: Session, learner_id: str, course: Course) -> bool:
    total = db.scalar(select(func.count(Lesson.id)).where(Lesson.course_id == course.id)) or 0
    if total == 0:
        return False
    completed = db.scalar(
        select(func.count(Progress.id)).where(
            Progress.learner_id == learner_id,
            Progress.course_id == course.id,
            Progress.completed.is_(True),
        )
    ) or 0
    return completed >= total


def check_and_issue(db: Session, learner_id: str, course_id: str, *, now: Optional[datetime] = None) -> Optional[Certificate]:
    """Issue the course certificate if the learner has completed every lesson.

    An existing certificate is returned as-is. Losing an issuance race to a
    concurrent call returns the winner's certificate without a second
    notification; a certificate-number collision is retried with a new number.
    """
    existing = find_certificate(db, learner_id, course_id)
    if existing is not None:
        return existing

    course = db.get(Course, course_id)
    if course is None or not course.is_published:
        return None
    if not _course_is_complete(db, learner_id, course):
        return None

    grade = course_grade(db, learner_id, course_id)
    title = course.title
    completed_at = now or datetime.utcnow()

    for attempt in range(settings.certificate_issue_attempts):
        certificate = Certificate(
            learner_id=learner_id,
            course_id=course_id,
            certificate_number=generate_certificate_number(),
            completed_at=completed_at,
            issued_at=completed_at,
            grade=grade,
        )
        try:
            db.add(certificate)
            db.flush()
        except IntegrityError:
            db.rollback()
            winner = find_certificate(db, learner_id, course_id)
            if winner is not None:
                logger.info("Certificate for learner %s course %s already issued concurrently", learner_id, course_id)
                return winner
            logger.warning("Certificate number collision on attempt %d, retrying", attempt + 1)
            continue
        notify(
            db,
            learner_id,
            "system",
            "Congratulations! 🎓",
            f'You completed the course "{title}" and earned a certificate!',
            link="/certificates",
        )
        db.commit()
        logger.info("Issued certificate %s to learner %s for course %s", certificate.certificate_number, learner_id, course_id)
        return certificate

    raise EngineError(f"Could not allocate a unique certificate number after {settings.certificate_issue_attempts} attempts")


def list_certificates(db: Session, learner_id: str) -> List[Certificate]:
    return list(
        db.scalars(
            select(Certificate).where(Certificate.learner_id == learner_id).order_by(Certificate.issued_at.desc())
        )
    )


def get_certificate(db: Session, learner_id: str, certificate_id: str) -> Certificate:
    row = db.get(Certificate, certificate_id)
    if row is None or row.learner_id != learner_id:
        raise NotFoundError("Certificate not found")
    return row
