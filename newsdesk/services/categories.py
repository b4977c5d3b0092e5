"""
Category lookups and mutations.
"""
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.admin_post import AdminPost
from ..models.category import Category
from ..models.post import Post
from ..models.user import User
from ..responses import bad_request, not_found
from .activity_log import ActivityType, record_activity


def find_by_name(db: Session, name: str) -> Optional[Category]:
    return db.query(Category).filter(func.lower(Category.name) == name.strip().lower()).first()


def resolve_category(db: Session, value: Union[int, str, None]) -> Category:
    """Accept a category id or a case-insensitive name."""
    if value is None or (isinstance(value, str) and not value.strip()):
        bad_request("Category is required")

    category = None
    if isinstance(value, int) or (isinstance(value, str) and value.strip().isdigit()):
        category = db.query(Category).filter(Category.id == int(value)).first()
    if category is None and isinstance(value, str):
        category = find_by_name(db, value)
    if category is None:
        bad_request(f"Category '{value}' does not exist")
    return category


def get_or_create(db: Session, name: str, description: str = None) -> Category:
    """Used by ingestion: reuse a matching category or add one."""
    category = find_by_name(db, name)
    if category is None:
        category = Category(name=name.strip()[:50], description=description)
        db.add(category)
        db.flush()
    return category


def create_category(db: Session, actor: User, name: str, description: str = None) -> Category:
    name = name.strip()
    if not name:
        bad_request("Category name is required")
    if find_by_name(db, name):
        bad_request("Category with this name already exists")

    category = Category(name=name, description=description, created_by=actor.id)
    db.add(category)
    db.flush()
    record_activity(
        db, ActivityType.CATEGORY_CREATED, f"Created category: {name}", actor,
        details={"category_id": category.id, "name": name},
    )
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, actor: User, category_id: int, changes: dict) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        not_found("Category")

    if "name" in changes and changes["name"] is not None:
        name = changes["name"].strip()
        if not name:
            bad_request("Category name is required")
        existing = find_by_name(db, name)
        if existing and existing.id != category.id:
            bad_request("Category with this name already exists")
        category.name = name
    if "description" in changes:
        category.description = changes["description"]
    if "is_active" in changes and changes["is_active"] is not None:
        category.is_active = changes["is_active"]

    record_activity(
        db, ActivityType.CATEGORY_UPDATED, f"Updated category: {category.name}", actor,
        details={"category_id": category.id, "name": category.name},
    )
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, actor: User, category_id: int):
    """Refuse while any post or staged submission still points at it."""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        not_found("Category")

    in_use = db.query(Post).filter(Post.category_id == category.id).count()
    if in_use:
        bad_request(f"Cannot delete category. It is being used in {in_use} post(s).")
    staged = db.query(AdminPost).filter(AdminPost.category_id == category.id).count()
    if staged:
        bad_request(f"Cannot delete category. It is being used in {staged} submission(s).")

    record_activity(
        db, ActivityType.CATEGORY_DELETED, f"Deleted category: {category.name}", actor,
        details={"category_id": category.id, "name": category.name},
    )
    db.delete(category)
    db.commit()
