import asyncio
import logging

from fastapi import FastAPI

from .catalog import seed_achievements
from .db import SessionLocal, init_db
from .notifications import purge_read_notifications
from .settings import settings
from .routers import achievements, certificates, lessons, notifications, progress, quizzes

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Progress & Achievement API")
app.include_router(quizzes.router)
app.include_router(lessons.router)
app.include_router(achievements.router)
app.include_router(certificates.router)
app.include_router(progress.router)
app.include_router(notifications.router)


@app.get("/info")
def root():
	return {"status": "ok"}


def _purge_notifications() -> None:
	db = SessionLocal()
	try:
		removed = purge_read_notifications(db, settings.notification_retention_days)
		if removed:
			logger.info("Purged %d read notifications", removed)
	except Exception:
		logger.exception("Notification cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Run daily; the first pass happens at startup
	while True:
		await asyncio.sleep(24 * 60 * 60)
		await asyncio.to_thread(_purge_notifications)


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	init_db()
	if settings.seed_default_achievements:
		db = SessionLocal()
		try:
			created, updated = seed_achievements(db)
			logger.info("Achievement catalog seeded: %d created, %d updated", created, updated)
		finally:
			db.close()
	_purge_notifications()
	# Start periodic cleanup loop
	asyncio.create_task(_cleanup_watcher())
