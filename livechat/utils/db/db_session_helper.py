from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from livechat.db import SessionLocal


@contextmanager
def db_session() -> Iterator[Session]:
    """Session scope for Celery tasks and scripts outside a request."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
