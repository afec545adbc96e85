from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, Uuid
from ..utils.datetime_utils import utcnow
import uuid


@as_declarative()
class Base:
    __abstract__ = True  # Prevents creating a table for the base class

    id: Mapped[uuid.UUID]

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    id = mapped_column(Uuid, primary_key=True, index=True, default=uuid.uuid4)
    # Naive UTC timestamps set client-side so they are available without a refresh
    created_at = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
