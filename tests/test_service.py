import logging
from datetime import datetime

import pytest
from sqlalchemy import select

from progress_engine import service
from progress_engine.errors import InputError, NotFoundError
from progress_engine.models import Certificate, LearnerAchievement, Notification, Progress, QuizResult

LEARNER = "alice"

QUESTIONS = [
    {"id": "q1", "type": "single", "options": ["A", "B", "C"], "correct_answers": "B", "points": 1},
    {"id": "q2", "type": "text", "correct_answers": "router", "points": 1, "explanation": "Routers forward packets"},
]

MIXED = [
    {"title": "Read", "type": "theoretical"},
    {"title": "Build", "type": "practical"},
    {"title": "Deploy", "type": "practical"},
]


class Recorder:
    def __init__(self):
        self.jobs = []

    def __call__(self, func, *args):
        # func is the isolation wrapper; the job itself is its first argument
        self.jobs.append(args[0])


def _rows(db, model, *where):
    db.expire_all()
    return list(db.scalars(select(model).where(*where)))


def test_submit_quiz_grades_and_stores_result(db, factory) -> None:
    quiz = factory.quiz(factory.course(), QUESTIONS)
    out = service.submit_quiz(db, quiz.id, LEARNER, ["B", "Router"], time_spent=4, schedule=Recorder())
    assert (out.score, out.max_score, out.percentage, out.passed) == (2, 2, 100, True)
    assert [r.question_id for r in out.review] == ["q1", "q2"]
    assert out.review[1].explanation == "Routers forward packets"

    stored = _rows(db, QuizResult)
    assert len(stored) == 1
    assert stored[0].id == out.result_id
    assert stored[0].course_id == quiz.course_id
    assert stored[0].time_spent == 4
    assert [a["is_correct"] for a in stored[0].answers] == [True, True]


def test_every_attempt_is_kept(db, factory) -> None:
    quiz = factory.quiz(factory.course(), QUESTIONS)
    service.submit_quiz(db, quiz.id, LEARNER, ["A", "switch"], schedule=Recorder())
    service.submit_quiz(db, quiz.id, LEARNER, ["B", "router"], schedule=Recorder())
    assert sorted(r.percentage for r in _rows(db, QuizResult)) == [0, 100]


def test_submit_quiz_rejects_bad_input(db, factory) -> None:
    course = factory.course()
    quiz = factory.quiz(course, QUESTIONS)
    with pytest.raises(InputError):
        service.submit_quiz(db, quiz.id, LEARNER, ["B"])
    with pytest.raises(InputError):
        service.submit_quiz(db, quiz.id, LEARNER, "B")
    with pytest.raises(NotFoundError):
        service.submit_quiz(db, "nope", LEARNER, ["B", "router"])
    with pytest.raises(InputError):
        service.submit_quiz(db, factory.quiz(course, QUESTIONS, published=False).id, LEARNER, ["B", "router"])
    with pytest.raises(InputError):
        service.submit_quiz(db, factory.quiz(course, []).id, LEARNER, [])
    assert _rows(db, QuizResult) == []


def test_only_passed_quiz_schedules_achievement_evaluation(db, factory) -> None:
    quiz = factory.quiz(factory.course(), QUESTIONS)
    recorder = Recorder()
    service.submit_quiz(db, quiz.id, LEARNER, ["A", "switch"], schedule=recorder)
    assert recorder.jobs == []
    service.submit_quiz(db, quiz.id, LEARNER, ["B", "router"], schedule=recorder)
    assert recorder.jobs == [service.achievements_job]


def test_passed_quiz_unlocks_quiz_achievements(db, factory) -> None:
    quiz = factory.quiz(factory.course(), QUESTIONS)
    perfect = factory.achievement("perfect_quiz", 1)
    service.submit_quiz(db, quiz.id, LEARNER, ["B", "router"])
    states = _rows(db, LearnerAchievement, LearnerAchievement.achievement_id == perfect.id)
    assert len(states) == 1
    assert states[0].unlocked_at is not None


def test_complete_lesson_reports_missing_practical_work(db, factory) -> None:
    lesson = factory.lesson(factory.course(), exercises=MIXED)
    factory.submission(LEARNER, lesson, 1)
    factory.submission(LEARNER, lesson, None)
    factory.submission("bob", lesson, 2)

    outcome = service.complete_lesson(db, lesson.id, LEARNER, schedule=Recorder())
    assert outcome.completed is False
    assert outcome.missing_indices == [2]
    assert outcome.missing_positions == [3]
    assert outcome.progress is None
    assert _rows(db, Progress) == []

    factory.submission(LEARNER, lesson, 2)
    outcome = service.complete_lesson(db, lesson.id, LEARNER, schedule=Recorder())
    assert outcome.completed is True
    assert outcome.progress.completed is True


def test_theoretical_lesson_completes_without_submissions(db, factory) -> None:
    lesson = factory.lesson(factory.course(), exercises=[{"type": "theoretical"}])
    assert service.complete_lesson(db, lesson.id, LEARNER, schedule=Recorder()).completed is True


def test_complete_lesson_is_idempotent(db, factory) -> None:
    lesson = factory.lesson(factory.course())
    recorder = Recorder()
    first = service.complete_lesson(db, lesson.id, LEARNER, 12, schedule=recorder)
    second = service.complete_lesson(db, lesson.id, LEARNER, 30, schedule=recorder)

    rows = _rows(db, Progress)
    assert len(rows) == 1
    assert second.progress.id == first.progress.id
    assert second.progress.completed_at == first.progress.completed_at
    assert rows[0].time_spent == 12
    assert recorder.jobs == [service.achievements_job, service.certificate_job]


def test_complete_lesson_finishes_preexisting_incomplete_record(db, factory) -> None:
    lesson = factory.lesson(factory.course())
    db.add(Progress(learner_id=LEARNER, course_id=lesson.course_id, lesson_id=lesson.id, completed=False))
    db.commit()
    recorder = Recorder()
    outcome = service.complete_lesson(db, lesson.id, LEARNER, 5, schedule=recorder)
    assert outcome.progress.completed is True
    assert outcome.progress.completed_at is not None
    assert len(_rows(db, Progress)) == 1
    assert len(recorder.jobs) == 2


def test_complete_unknown_lesson(db) -> None:
    with pytest.raises(NotFoundError):
        service.complete_lesson(db, "missing", LEARNER)


def test_lesson_achievement_end_to_end(db, factory) -> None:
    course = factory.course()
    lessons = [factory.lesson(course, order=i) for i in range(6)]
    rule = factory.achievement("lessons_completed", 5)

    for lesson in lessons[:3]:
        service.complete_lesson(db, lesson.id, LEARNER)
    state = _rows(db, LearnerAchievement, LearnerAchievement.achievement_id == rule.id)[0]
    assert state.progress == 60
    assert state.unlocked_at is None

    for lesson in lessons[3:5]:
        service.complete_lesson(db, lesson.id, LEARNER)
    state = _rows(db, LearnerAchievement, LearnerAchievement.achievement_id == rule.id)[0]
    assert state.progress == 100
    assert state.unlocked_at is not None

    service.complete_lesson(db, lessons[5].id, LEARNER)
    assert service.evaluate_achievements(db, LEARNER) == []
    assert len(_rows(db, Notification, Notification.type == "achievement")) == 1


def test_last_lesson_issues_certificate(db, factory) -> None:
    course = factory.course()
    lessons = [factory.lesson(course, order=i) for i in range(2)]
    quiz = factory.quiz(course, QUESTIONS)
    service.submit_quiz(db, quiz.id, LEARNER, ["B", "router"])

    service.complete_lesson(db, lessons[0].id, LEARNER)
    assert _rows(db, Certificate) == []
    service.complete_lesson(db, lessons[1].id, LEARNER)
    certs = _rows(db, Certificate)
    assert len(certs) == 1
    assert certs[0].grade == 100

    again = service.issue_certificate_if_eligible(db, LEARNER, course.id)
    assert again.certificate_number == certs[0].certificate_number


def test_side_effect_failure_does_not_fail_completion(db, factory, monkeypatch, caplog) -> None:
    lesson = factory.lesson(factory.course())

    def boom(db, learner_id):
        raise RuntimeError("evaluator down")

    monkeypatch.setattr(service, "evaluate_all", boom)
    with caplog.at_level(logging.ERROR, logger="progress_engine.service"):
        outcome = service.complete_lesson(db, lesson.id, LEARNER)
    assert outcome.completed is True
    assert "achievements_job failed" in caplog.text
    # The certificate job still ran after the achievement job failed
    assert len(_rows(db, Certificate)) == 1


def test_learning_stats(db, factory) -> None:
    course = factory.course()
    factory.course("Hidden", published=False)
    factory.course("Other")
    service.complete_lesson(db, factory.lesson(course).id, LEARNER, 25, schedule=Recorder())
    service.complete_lesson(db, factory.lesson(course, order=1).id, LEARNER, 10, schedule=Recorder())
    stats = service.learning_stats(db, LEARNER)
    assert stats.total_courses == 2
    assert stats.courses_started == 1
    assert stats.total_lessons_completed == 2
    assert stats.total_time_spent == 35


def test_quiz_results_newest_first_and_limited(db, factory) -> None:
    quiz = factory.quiz(factory.course(), QUESTIONS)
    other = factory.quiz(factory.course("Other"), QUESTIONS)
    for day, percentage in enumerate([10, 50, 90], start=1):
        row = factory.quiz_result(LEARNER, quiz, percentage, percentage >= 70)
        row.completed_at = datetime(2030, 1, day)
    factory.quiz_result(LEARNER, other, 100, True)
    factory.quiz_result("bob", quiz, 100, True)
    db.commit()

    results = service.quiz_results(db, LEARNER, quiz.id)
    assert [r.percentage for r in results] == [90, 50, 10]
    assert [r.percentage for r in service.quiz_results(db, LEARNER, quiz.id, limit=2)] == [90, 50]
    assert service.quiz_results(db, LEARNER, "missing") == []


def test_list_progress_most_recently_updated_first(db, factory) -> None:
    course = factory.course()
    older = factory.completed(LEARNER, factory.lesson(course))
    newer = factory.completed(LEARNER, factory.lesson(course, order=1))
    factory.completed("bob", factory.lesson(course, order=2))
    older.updated_at = datetime(2030, 1, 1)
    newer.updated_at = datetime(2030, 2, 1)
    db.commit()

    assert [p.id for p in service.list_progress(db, LEARNER)] == [newer.id, older.id]
    assert service.list_progress(db, "carol") == []
