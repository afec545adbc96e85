from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, Enum, JSON, Uuid
from .base import Base
import enum


class NewsCategory(enum.Enum):
    GENERAL = "general"
    ACADEMIC = "academic"
    EVENTS = "events"
    ANNOUNCEMENTS = "announcements"


class NewsStatus(enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class NewsArticle(Base):
    __tablename__ = "news_articles"

    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(500))
    slug = Column(String(350), nullable=False, unique=True, index=True)
    category = Column(Enum(NewsCategory), default=NewsCategory.GENERAL, nullable=False, index=True)
    tags = Column(JSON, default=list, nullable=False)

    author_id = Column(Uuid, nullable=False, index=True)
    author_role = Column(String(20), nullable=False)

    is_published = Column(Boolean, default=False, nullable=False, index=True)
    is_pinned = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, index=True)
    status = Column(Enum(NewsStatus), default=NewsStatus.DRAFT, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
