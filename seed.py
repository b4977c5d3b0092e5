"""
Bootstrap a fresh database: the first superadmin and the default categories.

Superadmin accounts cannot be created through the API, so run this once:

    SEED_SUPERADMIN_EMAIL=chief@newsdesk.local SEED_SUPERADMIN_PASSWORD=... python seed.py
"""
import os
import sys

from newsdesk.auth import get_password_hash
from newsdesk.config import get_settings
from newsdesk.database import SessionLocal, engine, Base
from newsdesk.models import Category, NotificationSubscription, Role, SubscriptionType, User

DEFAULT_CATEGORIES = [
    ("Markets", "Equities, indices and market movers"),
    ("Economy", "Macro data, policy and the rupee"),
    ("Companies", "Earnings, deals and corporate news"),
    ("Personal Finance", "Savings, tax and investing"),
    (get_settings().rss_default_category, "Imported items without a category"),
]

email = os.environ.get("SEED_SUPERADMIN_EMAIL", "superadmin@newsdesk.local").lower()
password = os.environ.get("SEED_SUPERADMIN_PASSWORD")
name = os.environ.get("SEED_SUPERADMIN_NAME", "Super Admin")

if not password or len(password) < 8:
    sys.exit("Set SEED_SUPERADMIN_PASSWORD (at least 8 characters)")

# Create tables
Base.metadata.create_all(bind=engine)

db = SessionLocal()

superadmin = db.query(User).filter(User.email == email).first()
if superadmin is None:
    superadmin = User(email=email, name=name)
    db.add(superadmin)
superadmin.hashed_password = get_password_hash(password)
superadmin.role = Role.SUPERADMIN
superadmin.is_active = True
db.flush()

if not db.query(NotificationSubscription).filter(NotificationSubscription.user_id == superadmin.id).first():
    db.add(NotificationSubscription(user_id=superadmin.id, subscription_type=SubscriptionType.ALL))

created = 0
for category_name, description in DEFAULT_CATEGORIES:
    if not db.query(Category).filter(Category.name == category_name).first():
        db.add(Category(name=category_name, description=description, created_by=superadmin.id))
        created += 1

db.commit()

print("Database seeded successfully!")
print(f"  - superadmin {email}")
print(f"  - {created} categories created")

db.close()
