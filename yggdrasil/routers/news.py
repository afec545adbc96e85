from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CurrentUser, get_current_user, get_optional_user
from ..models.news import NewsCategory
from ..schemas.news_schemas import NewsCreate, NewsUpdate, article_to_dict
from ..services.news_service import NewsService
from ..utils.pagination import OffsetParams, PaginationParams, Paginator
from ..utils.responses import success_response

router = APIRouter(prefix="/api/news", tags=["News"])


@router.post("", status_code=201)
async def create_article(
    article_data: NewsCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NewsService(db)
    article = await service.create_article(article_data, user)
    return success_response(article_to_dict(article), "Article created successfully")


@router.get("")
async def list_news(
    category: Optional[NewsCategory] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    tag: Optional[str] = Query(None, max_length=50),
    published: Optional[bool] = Query(None),
    pinned: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Page/limit listing of articles"""
    service = NewsService(db)
    articles, total = await service.list_articles(
        offset=pagination.offset,
        limit=pagination.limit,
        category=category,
        search=search,
        tag=tag,
        published=published,
        pinned=pinned,
        user=user,
    )
    return Paginator.create_response(
        [article_to_dict(article) for article in articles],
        Paginator.create_meta(pagination.page, pagination.limit, total),
    )


@router.get("/articles")
async def list_articles(
    category: Optional[NewsCategory] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    tag: Optional[str] = Query(None, max_length=50),
    pagination: OffsetParams = Depends(Paginator.get_offset_params),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Offset/limit listing of articles"""
    service = NewsService(db)
    articles, total = await service.list_articles(
        offset=pagination.offset,
        limit=pagination.limit,
        category=category,
        search=search,
        tag=tag,
        user=user,
    )
    return Paginator.create_response(
        [article_to_dict(article) for article in articles],
        Paginator.create_offset_meta(pagination.offset, pagination.limit, total),
    )


@router.get("/slug/{slug}")
async def get_article_by_slug(
    slug: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    service = NewsService(db)
    article = await service.get_article_by_slug(slug, user)
    return success_response(article_to_dict(article))


@router.get("/{article_id}")
async def get_article(
    article_id: UUID,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    service = NewsService(db)
    article = await service.get_article(article_id, user)
    return success_response(article_to_dict(article))


@router.put("/{article_id}")
async def update_article(
    article_id: UUID,
    article_data: NewsUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NewsService(db)
    article = await service.update_article(article_id, article_data, user)
    return success_response(article_to_dict(article), "Article updated successfully")


@router.delete("/{article_id}")
async def delete_article(
    article_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Archive an article; it is never physically removed"""
    service = NewsService(db)
    await service.delete_article(article_id, user)
    return success_response(message="Article deleted successfully")
