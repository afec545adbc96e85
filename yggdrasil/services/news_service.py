# yggdrasil/services/news_service.py
from typing import Any, List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import String, cast, func, or_, select
import logging
import re

from .base_service import BaseService
from ..core.exceptions import NotFoundError, PermissionDeniedError
from ..core.security import CurrentUser, UserRole, require_roles
from ..models.news import NewsArticle, NewsCategory, NewsStatus
from ..schemas.news_schemas import NewsCreate, NewsUpdate
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 300


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "article"


class NewsService(BaseService[NewsArticle]):
    def __init__(self, db: AsyncSession):
        super().__init__(NewsArticle, db)

    async def _unique_slug(self, title: str) -> str:
        base = slugify(title)
        result = await self.db.execute(
            select(NewsArticle.slug).where(
                or_(NewsArticle.slug == base, NewsArticle.slug.like(f"{base}-%"))
            )
        )
        taken = set(result.scalars().all())
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    @staticmethod
    def _can_manage(article: NewsArticle, user: CurrentUser) -> bool:
        return user.is_staff or article.author_id == user.id

    @staticmethod
    def _set_published(article: NewsArticle, published: bool):
        article.is_published = published
        if published:
            article.status = NewsStatus.PUBLISHED
            article.published_at = article.published_at or utcnow()
        elif article.status == NewsStatus.PUBLISHED:
            article.status = NewsStatus.DRAFT

    async def create_article(self, data: NewsCreate, author: CurrentUser) -> NewsArticle:
        require_roles(author, UserRole.ADMIN, UserRole.STAFF)

        article = NewsArticle(
            **data.model_dump(exclude={"is_published"}),
            slug=await self._unique_slug(data.title),
            author_id=author.id,
            author_role=author.role.value,
            status=NewsStatus.DRAFT,
            view_count=0,
            is_active=True,
        )
        self._set_published(article, data.is_published)

        self.db.add(article)
        await self.db.commit()
        logger.info(f"News article '{article.slug}' created by {author.id}")
        return article

    def _listing(self, category, search, tag, published, pinned, user: Optional[CurrentUser]):
        stmt = select(NewsArticle).where(NewsArticle.is_active == True)  # noqa: E712

        # Drafts stay hidden from everyone but staff
        if user is None or not user.is_staff:
            published = True
        if published is not None:
            stmt = stmt.where(NewsArticle.is_published == published)
        if category is not None:
            stmt = stmt.where(NewsArticle.category == category)
        if pinned is not None:
            stmt = stmt.where(NewsArticle.is_pinned == pinned)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(
                NewsArticle.title.ilike(pattern),
                NewsArticle.content.ilike(pattern),
                NewsArticle.summary.ilike(pattern),
            ))
        if tag:
            stmt = stmt.where(cast(NewsArticle.tags, String).like(f'%"{tag.strip().lower()}"%'))
        return stmt

    async def list_articles(
        self,
        offset: int = 0,
        limit: int = 20,
        category: Optional[NewsCategory] = None,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        published: Optional[bool] = None,
        pinned: Optional[bool] = None,
        user: Optional[CurrentUser] = None,
    ) -> Tuple[List[NewsArticle], int]:
        stmt = self._listing(category, search, tag, published, pinned, user)

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()

        stmt = stmt.order_by(
            NewsArticle.is_pinned.desc(),
            NewsArticle.published_at.desc(),
            NewsArticle.created_at.desc(),
        ).offset(offset).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def _get_visible(self, article: Optional[NewsArticle], key: Any, user: Optional[CurrentUser]) -> NewsArticle:
        if not article or not article.is_active:
            raise NotFoundError("Article", key)
        if not article.is_published and (user is None or not self._can_manage(article, user)):
            raise NotFoundError("Article", key)
        article.view_count = (article.view_count or 0) + 1
        await self.db.commit()
        return article

    async def get_article(self, article_id: UUID, user: Optional[CurrentUser] = None) -> NewsArticle:
        return await self._get_visible(await self.get(article_id), article_id, user)

    async def get_article_by_slug(self, slug: str, user: Optional[CurrentUser] = None) -> NewsArticle:
        result = await self.db.execute(select(NewsArticle).where(NewsArticle.slug == slug))
        return await self._get_visible(result.scalar_one_or_none(), slug, user)

    async def _get_managed(self, article_id: UUID, user: CurrentUser) -> NewsArticle:
        article = await self.get(article_id)
        if not article or not article.is_active:
            raise NotFoundError("Article", article_id)
        if not self._can_manage(article, user):
            raise PermissionDeniedError("Only the author or staff can modify this article")
        return article

    async def update_article(self, article_id: UUID, data: NewsUpdate, user: CurrentUser) -> NewsArticle:
        article = await self._get_managed(article_id, user)
        changes = data.model_dump(exclude_unset=True, exclude={"is_published", "status"})

        if changes.get("title") and changes["title"] != article.title:
            article.slug = await self._unique_slug(changes["title"])
        for key, value in changes.items():
            if value is not None or key == "summary":
                setattr(article, key, value)

        if data.status == NewsStatus.ARCHIVED:
            article.status = NewsStatus.ARCHIVED
            article.is_published = False
        elif data.status is not None:
            self._set_published(article, data.status == NewsStatus.PUBLISHED)
        if data.is_published is not None:
            self._set_published(article, data.is_published)

        await self.db.commit()
        logger.info(f"News article {article.id} updated by {user.id}")
        return article

    async def delete_article(self, article_id: UUID, user: CurrentUser) -> bool:
        article = await self._get_managed(article_id, user)
        article.is_active = False
        article.is_published = False
        article.status = NewsStatus.ARCHIVED
        await self.db.commit()
        logger.info(f"News article {article.id} archived by {user.id}")
        return True
