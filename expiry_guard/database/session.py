from sqlalchemy.orm import sessionmaker

from expiry_guard.database.engine import engine


def make_session_factory(bind):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=bind,
    )


SessionLocal = make_session_factory(engine)
