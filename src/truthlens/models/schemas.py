from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

ArticleStatus = Literal["draft", "published", "archived"]


class TopicCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str | None = None
    description: str | None = None


class TopicUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    slug: str | None = None
    description: str | None = None


class TopicOut(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReferenceIn(BaseModel):
    title: str = Field(..., min_length=1)
    url: str | None = None
    description: str | None = None


class ReferenceUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    url: str | None = None
    description: str | None = None


class ReferenceOut(BaseModel):
    id: int
    article_id: int
    title: str
    url: str | None
    description: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1)
    slug: str | None = None
    description: str | None = None
    content: str = Field(..., min_length=1)
    topic_id: int | None = None
    author_id: int | None = None
    status: ArticleStatus = "draft"
    published_at: datetime | None = None
    references: list[ReferenceIn] = Field(default_factory=list)


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    slug: str | None = None
    description: str | None = None
    content: str | None = Field(None, min_length=1)
    topic_id: int | None = None
    author_id: int | None = None
    status: ArticleStatus | None = None
    published_at: datetime | None = None
    references: list[ReferenceIn] | None = None


class ArticleSummary(BaseModel):
    id: int
    title: str
    slug: str
    description: str | None
    content: str
    topic_id: int | None
    author_id: int | None
    status: str
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ArticleDetail(ArticleSummary):
    references: list[ReferenceOut]

    model_config = {"from_attributes": True}


class ArticleListResponse(BaseModel):
    articles: list[ArticleSummary]
    total: int
    limit: int
    offset: int


class VersionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    content: str = Field(..., min_length=1)


class VersionOut(BaseModel):
    id: int
    article_id: int
    title: str
    description: str | None
    content: str
    version_number: int
    created_by_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class RestoredArticle(ArticleDetail):
    restored_from_version: int
    version: VersionOut


class ViewEvent(BaseModel):
    article_id: int


class BounceEvent(BaseModel):
    article_id: int
    time_on_page: int | None = Field(None, ge=0, description="Seconds spent on the page")


class ShareEvent(BaseModel):
    article_id: int
    platform: str = Field(..., min_length=1, max_length=50)


class BookmarkEvent(BaseModel):
    article_id: int


class ArticleViewOut(BaseModel):
    id: int
    article_id: int
    user_id: int | None
    ip: str | None
    user_agent: str | None
    referrer: str | None
    viewed_at: datetime

    model_config = {"from_attributes": True}


class ArticleBounceOut(BaseModel):
    id: int
    article_id: int
    user_id: int | None
    ip: str | None
    user_agent: str | None
    referrer: str | None
    time_on_page: int | None
    bounced_at: datetime

    model_config = {"from_attributes": True}


class SocialShareOut(BaseModel):
    id: int
    article_id: int
    user_id: int | None
    ip: str | None
    user_agent: str | None
    referrer: str | None
    platform: str
    shared_at: datetime

    model_config = {"from_attributes": True}


class DailyStatOut(BaseModel):
    article_id: int
    date: date
    views: int
    shares: int
    bounces: int
    average_time_on_page: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class TopArticle(BaseModel):
    id: int
    title: str
    views: int

    model_config = {"from_attributes": True}


class OverviewStats(BaseModel):
    total_views: int
    total_shares: int
    total_articles: int
    top_articles: list[TopArticle]


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    article_count: int
    published_count: int
