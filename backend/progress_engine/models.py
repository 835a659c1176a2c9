from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Integer, Text, JSON, ForeignKey, UniqueConstraint, Index
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class Course(Base):
	__tablename__ = "courses"
	id = Column(String(32), primary_key=True, default=_new_id)
	title = Column(String(256), nullable=False)
	is_published = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Lesson(Base):
	__tablename__ = "lessons"
	id = Column(String(32), primary_key=True, default=_new_id)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False, index=True)
	title = Column(String(256), nullable=False)
	order = Column(Integer, default=0, nullable=False)
	# List of {title, description, type, instructions}; type is "practical" or "theoretical"
	exercises = Column(JSON, default=list, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Quiz(Base):
	__tablename__ = "quizzes"
	id = Column(String(32), primary_key=True, default=_new_id)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False, index=True)
	lesson_id = Column(String(32), ForeignKey("lessons.id"), nullable=True)
	title = Column(String(256), nullable=False)
	passing_score = Column(Integer, default=70, nullable=False)
	is_published = Column(Boolean, default=False, nullable=False)
	# List of question objects, validated through schemas.QuizDefinition
	questions = Column(JSON, default=list, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class QuizResult(Base):
	__tablename__ = "quiz_results"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False)
	quiz_id = Column(String(32), ForeignKey("quizzes.id"), nullable=False)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False)
	# Per-question breakdown as graded at submission time
	answers = Column(JSON, default=list, nullable=False)
	score = Column(Integer, nullable=False)
	max_score = Column(Integer, nullable=False)
	percentage = Column(Integer, nullable=False)
	passed = Column(Boolean, nullable=False)
	time_spent = Column(Integer, nullable=True)  # minutes
	completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (Index("ix_quiz_results_learner_quiz", "learner_id", "quiz_id"),)


class Submission(Base):
	__tablename__ = "submissions"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False)
	lesson_id = Column(String(32), ForeignKey("lessons.id"), nullable=False)
	exercise_index = Column(Integer, nullable=True)
	file_url = Column(String(512), nullable=False)
	file_name = Column(String(256), nullable=False)
	status = Column(String(16), default="pending", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (Index("ix_submissions_learner_lesson", "learner_id", "lesson_id"),)


class Progress(Base):
	__tablename__ = "progress"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False)
	lesson_id = Column(String(32), ForeignKey("lessons.id"), nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	completed_at = Column(DateTime, nullable=True)
	time_spent = Column(Integer, default=0, nullable=False)  # minutes
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (UniqueConstraint("learner_id", "lesson_id", name="uq_progress_learner_lesson"),)


class Achievement(Base):
	__tablename__ = "achievements"
	id = Column(String(32), primary_key=True, default=_new_id)
	title = Column(String(128), nullable=False)
	description = Column(Text, nullable=False, default="")
	icon = Column(String(16), nullable=False, default="🏆")
	# lessons, quizzes, streak, time, courses, special
	category = Column(String(16), nullable=False, default="special")
	requirement_type = Column(String(32), nullable=False)
	requirement_value = Column(Integer, nullable=False, default=1)
	points = Column(Integer, nullable=False, default=10)
	rarity = Column(String(16), nullable=False, default="common")
	is_active = Column(Boolean, default=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class LearnerAchievement(Base):
	__tablename__ = "learner_achievements"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False)
	achievement_id = Column(String(32), ForeignKey("achievements.id"), nullable=False)
	progress = Column(Integer, default=0, nullable=False)
	# Set once on unlock and never cleared
	unlocked_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (UniqueConstraint("learner_id", "achievement_id", name="uq_learner_achievement"),)


class Certificate(Base):
	__tablename__ = "certificates"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False)
	course_id = Column(String(32), ForeignKey("courses.id"), nullable=False)
	certificate_number = Column(String(64), nullable=False, unique=True)
	completed_at = Column(DateTime, nullable=False)
	issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	grade = Column(Integer, nullable=True)

	__table_args__ = (UniqueConstraint("learner_id", "course_id", name="uq_certificate_learner_course"),)


class Notification(Base):
	__tablename__ = "notifications"
	id = Column(String(32), primary_key=True, default=_new_id)
	learner_id = Column(String(128), nullable=False, index=True)
	# achievement, lesson, quiz, deadline, comment, grade, system
	type = Column(String(16), nullable=False)
	title = Column(String(256), nullable=False)
	message = Column(Text, nullable=False)
	link = Column(String(256), nullable=True)
	is_read = Column(Boolean, default=False, nullable=False)
	read_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
