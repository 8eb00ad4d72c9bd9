from datetime import datetime, timezone
from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, Uuid, func
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@as_declarative()
class Base:
    __abstract__ = True  # Prevents creating a table for the base class

    id: Mapped[uuid.UUID]

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Native UUID on PostgreSQL, CHAR(32) elsewhere
    id = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Set once at insert; rows are never touched again apart from is_read
    created_at = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
