from pydantic import BaseModel, Field
from typing import Optional


class Channels(BaseModel):
    in_app: bool = True
    web_push: bool = False
    email: bool = False


class SubscriptionCreate(BaseModel):
    subscription_type: str = Field("all", pattern="^(all|feed|category)$")
    feed_id: Optional[int] = None
    category_id: Optional[int] = None
    channels: Channels = Channels()


class SubscriptionUpdate(BaseModel):
    channels: Optional[Channels] = None
    is_active: Optional[bool] = None


class PushKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1, max_length=2000)
    keys: PushKeys


class PushUnsubscribeRequest(BaseModel):
    endpoint: str
