"""
Admin account management, superadmin only.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User, Role
from ..auth import get_superadmin, get_password_hash
from ..schemas.admins import AdminCreate, AdminUpdate, CrudAccessUpdate
from ..services.activity_log import ActivityType, record_activity
from ..responses import success, bad_request, forbidden, not_found

router = APIRouter(prefix="/api/users/admins", tags=["admins"])


def _account_event(user: User) -> dict:
    return {
        "target_user_id": user.id,
        "email": user.email,
        "role": user.role,
        "crud_access": bool(user.crud_access),
        "is_active": user.is_active,
    }


def _get_admin(db: Session, admin_id: int) -> User:
    admin = db.query(User).filter(User.id == admin_id, User.role.in_(Role.STAFF)).first()
    if not admin:
        not_found("Admin")
    return admin


def _get_editable_admin(db: Session, admin_id: int) -> User:
    admin = _get_admin(db, admin_id)
    if admin.role == Role.SUPERADMIN:
        forbidden("Superadmin accounts cannot be modified here")
    return admin


@router.get("")
def list_admins(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """List all admin and superadmin accounts."""
    admins = db.query(User).filter(User.role.in_(Role.STAFF)).order_by(User.created_at.desc()).all()
    return success([a.to_dict() for a in admins], count=len(admins))


@router.get("/{admin_id}")
def get_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    return success(_get_admin(db, admin_id).to_dict())


@router.post("", status_code=201)
def create_admin(
    data: AdminCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """Create an admin. Superadmins cannot be created through the API."""
    if data.role != Role.ADMIN:
        forbidden("Only admin accounts can be created")
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        bad_request("Email already registered")

    admin = User(
        name=data.name,
        email=email,
        hashed_password=get_password_hash(data.password),
        role=Role.ADMIN,
        crud_access=data.crud_access,
        created_by=current_user.id,
    )
    db.add(admin)
    db.flush()
    record_activity(
        db, ActivityType.ADMIN_CREATED, f"Created admin: {admin.name}", current_user,
        details=_account_event(admin),
    )
    db.commit()
    db.refresh(admin)
    return success(admin.to_dict(), "Admin created successfully")


@router.put("/{admin_id}")
def update_admin(
    admin_id: int,
    data: AdminUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin = _get_editable_admin(db, admin_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("email"):
        email = changes["email"].lower()
        existing = db.query(User).filter(User.email == email).first()
        if existing and existing.id != admin.id:
            bad_request("Email already registered")
        admin.email = email
    if changes.get("password"):
        admin.hashed_password = get_password_hash(changes["password"])
    for field in ("name", "is_active", "crud_access"):
        if changes.get(field) is not None:
            setattr(admin, field, changes[field])

    record_activity(
        db, ActivityType.ADMIN_UPDATED, f"Updated admin: {admin.name}", current_user,
        details=_account_event(admin),
    )
    db.commit()
    db.refresh(admin)
    return success(admin.to_dict(), "Admin updated successfully")


@router.put("/{admin_id}/crud-access")
def set_crud_access(
    admin_id: int,
    data: CrudAccessUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """Grant or revoke direct publishing rights."""
    admin = _get_editable_admin(db, admin_id)
    admin.crud_access = data.crud_access
    record_activity(
        db, ActivityType.CRUD_ACCESS_CHANGED,
        f"{'Granted' if data.crud_access else 'Revoked'} CRUD access: {admin.name}",
        current_user,
        details=_account_event(admin),
    )
    db.commit()
    db.refresh(admin)
    return success(admin.to_dict(), "CRUD access updated")


@router.delete("/{admin_id}")
def delete_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin = _get_editable_admin(db, admin_id)
    record_activity(
        db, ActivityType.ADMIN_DELETED, f"Deleted admin: {admin.name}", current_user,
        details=_account_event(admin),
    )
    db.delete(admin)
    db.commit()
    return success(message="Admin deleted successfully")
