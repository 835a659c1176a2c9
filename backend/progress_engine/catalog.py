from __future__ import annotations
from typing import Any, Dict, List, Tuple
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Achievement


DEFAULT_ACHIEVEMENTS: List[Dict[str, Any]] = [
	{"title": "First step", "description": "Complete your first lesson", "icon": "🎯", "category": "lessons", "requirement_type": "lessons_completed", "requirement_value": 1, "points": 10, "rarity": "common"},
	{"title": "Apprentice", "description": "Complete 5 lessons", "icon": "📚", "category": "lessons", "requirement_type": "lessons_completed", "requirement_value": 5, "points": 25, "rarity": "common"},
	{"title": "Student", "description": "Complete 10 lessons", "icon": "🎓", "category": "lessons", "requirement_type": "lessons_completed", "requirement_value": 10, "points": 50, "rarity": "rare"},
	{"title": "Learning master", "description": "Complete 25 lessons", "icon": "🌟", "category": "lessons", "requirement_type": "lessons_completed", "requirement_value": 25, "points": 100, "rarity": "epic"},
	{"title": "Legend", "description": "Complete 50 lessons", "icon": "👑", "category": "lessons", "requirement_type": "lessons_completed", "requirement_value": 50, "points": 250, "rarity": "legendary"},
	{"title": "First quiz", "description": "Pass your first quiz", "icon": "✅", "category": "quizzes", "requirement_type": "quizzes_passed", "requirement_value": 1, "points": 15, "rarity": "common"},
	{"title": "Quiz taker", "description": "Pass 5 quizzes", "icon": "📝", "category": "quizzes", "requirement_type": "quizzes_passed", "requirement_value": 5, "points": 40, "rarity": "common"},
	{"title": "Quiz expert", "description": "Pass 10 quizzes", "icon": "💯", "category": "quizzes", "requirement_type": "quizzes_passed", "requirement_value": 10, "points": 75, "rarity": "rare"},
	{"title": "Perfect score", "description": "Pass a quiz with 100%", "icon": "🏆", "category": "quizzes", "requirement_type": "perfect_quiz", "requirement_value": 1, "points": 50, "rarity": "epic"},
	{"title": "First course", "description": "Complete your first course", "icon": "📖", "category": "courses", "requirement_type": "courses_completed", "requirement_value": 1, "points": 100, "rarity": "rare"},
	{"title": "Well rounded", "description": "Complete 3 courses", "icon": "🎯", "category": "courses", "requirement_type": "courses_completed", "requirement_value": 3, "points": 200, "rarity": "epic"},
	{"title": "Time invested", "description": "Spend 60 minutes learning", "icon": "⏰", "category": "time", "requirement_type": "time_spent", "requirement_value": 60, "points": 30, "rarity": "common"},
	{"title": "Diligent learner", "description": "Spend 300 minutes learning", "icon": "🔥", "category": "time", "requirement_type": "time_spent", "requirement_value": 300, "points": 100, "rarity": "rare"},
	{"title": "Time master", "description": "Spend 1000 minutes learning", "icon": "⏳", "category": "time", "requirement_type": "time_spent", "requirement_value": 1000, "points": 300, "rarity": "epic"},
]

_UPDATABLE = ("description", "icon", "category", "requirement_type", "requirement_value", "points", "rarity")


def seed_achievements(db: Session, definitions: List[Dict[str, Any]] = DEFAULT_ACHIEVEMENTS) -> Tuple[int, int]:
	# Matched by title; existing rows get their rule and metadata refreshed
	created = 0
	updated = 0
	for data in definitions:
		row = db.scalar(select(Achievement).where(Achievement.title == data["title"]))
		if row is None:
			db.add(Achievement(**data))
			created += 1
			continue
		changed = False
		for field in _UPDATABLE:
			if field in data and getattr(row, field) != data[field]:
				setattr(row, field, data[field])
				changed = True
		if changed:
			updated += 1
	db.commit()
	return created, updated
