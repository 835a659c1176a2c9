from __future__ import annotations
import uuid
from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


QuestionType = Literal["single", "multiple", "text"]
ExerciseType = Literal["practical", "theoretical"]
RequirementType = Literal[
    "lessons_completed",
    "quizzes_passed",
    "courses_completed",
    "time_spent",
    "perfect_quiz",
    "streak_days",
    "custom",
]

# One raw answer per question: a single option/text, a list of options, or nothing
RawAnswer = Union[str, List[str], None]


class Question(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    question: str = ""
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answers: Union[str, List[str]]
    points: int = Field(default=1, ge=0)
    explanation: Optional[str] = None

    @field_validator("options", "correct_answers", mode="before")
    @classmethod
    def _stringify(cls, value):
        # Stored definitions may hold numbers; answers are compared as text
        if isinstance(value, (list, tuple)):
            return [str(v) if isinstance(v, (int, float)) else v for v in value]
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def correct_list(self) -> List[str]:
        if isinstance(self.correct_answers, list):
            return [str(a) for a in self.correct_answers]
        return [str(self.correct_answers)]


class QuizDefinition(BaseModel):
    id: Optional[str] = None
    title: str = ""
    passing_score: int = Field(default=70, ge=0, le=100)
    questions: List[Question] = Field(default_factory=list)


class QuestionOutcome(BaseModel):
    question_id: str
    answer: RawAnswer = None
    is_correct: bool
    points: int


class GradeResult(BaseModel):
    answers: List[QuestionOutcome]
    score: int
    max_score: int
    percentage: int
    passed: bool


class QuestionReview(BaseModel):
    question_id: str
    question: str
    correct_answers: Union[str, List[str]]
    explanation: Optional[str] = None


class QuizSubmitRequest(BaseModel):
    answers: List[RawAnswer]
    time_spent: Optional[int] = Field(default=None, ge=0, description="Minutes spent on the attempt")


class QuizSubmissionResult(BaseModel):
    result_id: str
    score: int
    max_score: int
    percentage: int
    passed: bool
    answers: List[QuestionOutcome]
    review: List[QuestionReview] = Field(default_factory=list)


class LessonExercise(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    type: ExerciseType = "theoretical"
    instructions: str = ""


class GateDecision(BaseModel):
    allowed: bool
    # 0-based positions in the lesson's exercise list
    missing_indices: List[int] = Field(default_factory=list)
    # Same exercises numbered from 1 for display
    missing_positions: List[int] = Field(default_factory=list)


class CompleteLessonRequest(BaseModel):
    time_spent: int = Field(default=0, ge=0, description="Minutes spent on the lesson")


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    lesson_id: str
    completed: bool
    completed_at: Optional[datetime] = None
    time_spent: int = 0
    updated_at: Optional[datetime] = None


class QuizResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    course_id: str
    score: int
    max_score: int
    percentage: int
    passed: bool
    time_spent: Optional[int] = None
    completed_at: datetime


class LessonCompletion(BaseModel):
    completed: bool
    progress: Optional[ProgressOut] = None
    missing_indices: List[int] = Field(default_factory=list)
    missing_positions: List[int] = Field(default_factory=list)


class AchievementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    icon: str
    category: str
    requirement_type: str
    requirement_value: int
    points: int
    rarity: str


class AchievementStatus(AchievementOut):
    unlocked: bool
    unlocked_at: Optional[datetime] = None
    progress: int


class LearnerAchievementOut(BaseModel):
    achievement: AchievementOut
    progress: int
    unlocked_at: Optional[datetime] = None


class LearnerAchievementsSummary(BaseModel):
    unlocked: List[LearnerAchievementOut]
    in_progress: List[LearnerAchievementOut]
    total_points: int
    total_unlocked: int


class CheckAchievementsResponse(BaseModel):
    newly_unlocked: List[AchievementOut]
    count: int


class CertificateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    certificate_number: str
    completed_at: datetime
    issued_at: datetime
    grade: Optional[int] = None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationList(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int


class MarkAllReadResult(BaseModel):
    count: int


class LearningStats(BaseModel):
    total_courses: int
    courses_started: int
    total_lessons_completed: int
    total_time_spent: int
