from pydantic import BaseModel, Field
from typing import Optional, List, Union
from datetime import datetime


class PostBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    short_title: str = Field(..., min_length=1, max_length=100)
    body: str = Field(..., min_length=1)
    # id or name
    category: Union[int, str]
    tags: Union[List[str], str] = []
    region: str = "India"
    author: Optional[str] = Field(None, max_length=100)
    publish_date_time: Optional[datetime] = None
    is_sponsored: bool = False
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=300)
    image_url: Optional[str] = Field(None, max_length=1000)


class PostCreate(PostBase):
    pass


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    short_title: Optional[str] = Field(None, min_length=1, max_length=100)
    body: Optional[str] = Field(None, min_length=1)
    category: Optional[Union[int, str]] = None
    tags: Optional[Union[List[str], str]] = None
    region: Optional[str] = None
    publish_date_time: Optional[datetime] = None
    is_sponsored: Optional[bool] = None
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=300)
    image_url: Optional[str] = Field(None, max_length=1000)
    status: Optional[str] = Field(None, pattern="^(draft|pending_approval|scheduled|published|archived)$")


class ScheduleRequest(BaseModel):
    publish_date_time: datetime


class TimezoneUpdate(BaseModel):
    timezone: str
