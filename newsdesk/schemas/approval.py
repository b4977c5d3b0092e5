from pydantic import BaseModel
from typing import Optional


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class ChangesRequest(BaseModel):
    notes: Optional[str] = None
