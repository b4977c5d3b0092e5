from pydantic import BaseModel, Field, HttpUrl
from typing import Optional, List
from datetime import datetime


class FeedItem(BaseModel):
    title: str
    short_title: str
    description: str = ""
    content: str = ""
    link: Optional[str] = None
    guid: str
    categories: List[str] = []
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    image_url: Optional[str] = None


class ParseRequest(BaseModel):
    url: HttpUrl


class SaveRequest(BaseModel):
    url: Optional[HttpUrl] = None
    items: Optional[List[FeedItem]] = None
    save_as_draft: bool = False
    force: bool = False
    category_filter: Optional[str] = None
    author: Optional[str] = None


class FeedConfigCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: HttpUrl
    brand_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_active: bool = True
    fetch_interval_minutes: Optional[int] = Field(None, ge=5, le=1440)


class FeedConfigUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    url: Optional[HttpUrl] = None
    brand_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    fetch_interval_minutes: Optional[int] = Field(None, ge=5, le=1440)
