import math

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import get_settings

Base = declarative_base()


def _clamp(value, low, high):
    if value is None:
        return None
    return max(low, min(high, value))


def _register_math_functions(dbapi_connection, connection_record):
    """SQLite ships without trig functions; install the ones the distance query uses."""
    dbapi_connection.create_function("acos", 1, lambda x: None if x is None else math.acos(_clamp(x, -1.0, 1.0)), deterministic=True)
    dbapi_connection.create_function("cos", 1, lambda x: None if x is None else math.cos(x), deterministic=True)
    dbapi_connection.create_function("sin", 1, lambda x: None if x is None else math.sin(x), deterministic=True)
    dbapi_connection.create_function("radians", 1, lambda x: None if x is None else math.radians(x), deterministic=True)
    dbapi_connection.create_function("least", 2, lambda a, b: None if a is None or b is None else min(a, b), deterministic=True)
    dbapi_connection.create_function("greatest", 2, lambda a, b: None if a is None or b is None else max(a, b), deterministic=True)


def make_engine(url: str, **kwargs):
    """Create an engine; SQLite connections get the math functions registered."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _register_math_functions)
    return engine


engine = make_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


# Dependency for DB sessions
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
