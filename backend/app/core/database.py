"""
Database configuration and session management for the SKD tryout backend.

Sets up SQLAlchemy engine, session factory, and base model.
"""

from typing import Generator
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
import logging

from .config import settings


# Configure logging
logger = logging.getLogger(__name__)


# SQLAlchemy metadata conventions for better constraint naming
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)


# Create engine based on environment
if settings.TESTING:
    # Use in-memory SQLite for testing
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
elif settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=settings.DEBUG,
    )
else:
    # Use PostgreSQL for development/production
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
        echo=settings.DEBUG,
    )


# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Base class for models
Base = declarative_base(metadata=metadata)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(db: Session) -> None:
    """
    Initialize database with required data.

    Creates the first admin account, the default system settings and the
    global chat room when they are missing. Safe to call on every startup.

    Args:
        db: Database session
    """
    from app.models.user import User, UserRole
    from app.models.admin import SystemSettings
    from app.models.chat import ChatRoom, ChatRoomType
    from app.core.security import get_password_hash

    admin_user = db.query(User).filter(
        User.email == settings.FIRST_ADMIN_EMAIL
    ).first()

    if not admin_user:
        admin_user = User(
            email=settings.FIRST_ADMIN_EMAIL,
            full_name=settings.FIRST_ADMIN_NAME,
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            role=UserRole.ADMIN.value,
            is_active=True,
            is_admin=True,
        )
        db.add(admin_user)
        logger.info(f"Admin user created: {settings.FIRST_ADMIN_EMAIL}")

    existing_keys = {key for (key,) in db.query(SystemSettings.key).all()}
    for default in SystemSettings.get_default_settings():
        if default["key"] not in existing_keys:
            db.add(SystemSettings(**default))
            logger.info(f"System setting seeded: {default['key']}")

    global_room = db.query(ChatRoom).filter(
        ChatRoom.type == ChatRoomType.GLOBAL.value
    ).first()
    if not global_room:
        db.add(ChatRoom(
            name=ChatRoom.GLOBAL_ROOM_NAME,
            type=ChatRoomType.GLOBAL.value,
            is_active=True,
        ))
        logger.info("Global chat room created")

    db.commit()


def check_database_connection() -> bool:
    """
    Check if database is accessible.

    Returns:
        bool: True if database is accessible, False otherwise
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
    finally:
        db.close()


class DatabaseManager:
    """
    Database manager for handling database operations.
    """

    @staticmethod
    def create_all_tables():
        """Create all database tables."""
        # Models must be imported so they register with the metadata
        import app.models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("All database tables created successfully")
