from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from ..models.news import NewsArticle, NewsCategory, NewsStatus
from ..utils.datetime_utils import isoformat

MAX_TAGS = 10
MAX_TAG_LENGTH = 50


def _clean_tags(tags: List[str]) -> List[str]:
    cleaned = list(dict.fromkeys(tag.strip().lower() for tag in tags if tag.strip()))
    if len(cleaned) > MAX_TAGS:
        raise ValueError(f'Maximum {MAX_TAGS} tags allowed')
    if any(len(tag) > MAX_TAG_LENGTH for tag in cleaned):
        raise ValueError(f'Tags must be at most {MAX_TAG_LENGTH} characters')
    return cleaned


class NewsCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    summary: Optional[str] = Field(default=None, max_length=500)
    category: NewsCategory = NewsCategory.GENERAL
    tags: List[str] = Field(default_factory=list)
    is_published: bool = False
    is_pinned: bool = False

    @field_validator('title', 'content')
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be empty')
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)


class NewsUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    content: Optional[str] = Field(default=None, min_length=1)
    summary: Optional[str] = Field(default=None, max_length=500)
    category: Optional[NewsCategory] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None
    is_pinned: Optional[bool] = None
    status: Optional[NewsStatus] = None

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v) if v is not None else v


def article_to_dict(article: NewsArticle) -> dict:
    return {
        "id": str(article.id),
        "title": article.title,
        "slug": article.slug,
        "content": article.content,
        "summary": article.summary,
        "category": article.category.value,
        "tags": article.tags or [],
        "author_id": str(article.author_id),
        "author_role": article.author_role,
        "is_published": article.is_published,
        "is_pinned": article.is_pinned,
        "published_at": isoformat(article.published_at),
        "status": article.status.value,
        "view_count": article.view_count,
        "created_at": isoformat(article.created_at),
        "updated_at": isoformat(article.updated_at),
    }
