from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import DATABASE_URL

# SQLite needs cross-thread access for the background task pool
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Database connection
engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


# Session per request (used through Depends)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
