"""
Category routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..models.category import Category
from ..models.user import User
from ..auth import get_required_user, get_staff_user, get_superadmin
from ..schemas.categories import CategoryCreate, CategoryUpdate
from ..services import categories as category_service
from ..responses import success, paginated, not_found, page_window

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("")
def get_categories(
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    query = db.query(Category)
    if search:
        query = query.filter(Category.name.ilike(f"%{search}%"))
    total = query.count()
    items = query.order_by(Category.name.asc()).offset(page_window(page, limit)).limit(limit).all()
    return paginated([c.to_dict() for c in items], total, page, limit)


@router.get("/dropdown")
def get_dropdown(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Active categories as id/name pairs for select inputs."""
    items = db.query(Category).filter(Category.is_active.is_(True)).order_by(Category.name.asc()).all()
    return success([{"id": c.id, "name": c.name} for c in items], count=len(items))


@router.get("/{category_id}")
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        not_found("Category")
    return success(category.to_dict())


@router.post("", status_code=201)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    category = category_service.create_category(db, current_user, data.name, data.description)
    return success(category.to_dict(), "Category created successfully")


@router.put("/{category_id}")
def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    category = category_service.update_category(db, current_user, category_id, data.model_dump(exclude_unset=True))
    return success(category.to_dict(), "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    category_service.delete_category(db, current_user, category_id)
    return success(message="Category deleted successfully")
