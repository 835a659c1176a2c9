from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./progress.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


def session_factory_for(db: Session) -> sessionmaker:
	# Background jobs open their own session on the same engine as the triggering request
	return sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind(), future=True)


def init_db() -> None:
	from . import models  # noqa: F401  registers the tables on Base.metadata
	Base.metadata.create_all(bind=engine)
