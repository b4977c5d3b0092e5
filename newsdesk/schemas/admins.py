from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class AdminCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: str = "admin"
    crud_access: bool = False


class AdminUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=72)
    is_active: Optional[bool] = None
    crud_access: Optional[bool] = None


class CrudAccessUpdate(BaseModel):
    crud_access: bool
