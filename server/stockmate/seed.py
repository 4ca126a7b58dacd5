import logging
import os
from decimal import Decimal

from sqlalchemy.orm import Session

from .auth import grant_modules, hash_password, seed_modules
from .bom.service import create_revision, find_current_revision
from .catalog.service import create_item
from .db import Base, SessionLocal, engine, ensure_sqlite_directory, settings
from .logging_config import configure_logging
from .models import ITEM_TYPE_ASSEMBLY, ITEM_TYPE_COMPONENT, Item, User
from .module_keys import MODULE_KEYS

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "TRUE", "yes", "YES"}

DEMO_COMPONENTS = [
    ("PART-A", "Part A", "pcs", "part", Decimal("5")),
    ("PART-B", "Part B", "g", "material", Decimal("250")),
]
DEMO_ASSEMBLY = ("ASM-1", "Assembly 1", [("PART-A", Decimal("2")), ("PART-B", Decimal("0.5"))])


BCRYPT_MAX_BYTES = 72


def _bcrypt_safe(password: str) -> str:
    # bcrypt rejects secrets over 72 bytes; drop any split trailing character
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


def _ensure_admin(db: Session, email: str, password: str) -> User:
    admin = db.query(User).filter(User.email == email).first()
    if admin is None:
        admin = User(email=email, full_name="Stockmate Admin", password_hash=hash_password(_bcrypt_safe(password)))
        db.add(admin)
        logger.info("Seeding admin user %s", email)
    admin.is_admin = True
    admin.is_active = True
    admin.full_name = admin.full_name or "Stockmate Admin"
    db.flush()
    grant_modules(db, admin.id, MODULE_KEYS)
    return admin


def _get_or_create_item(db: Session, sku: str, **kwargs) -> Item:
    item = db.query(Item).filter(Item.sku == sku).first()
    if item:
        return item
    return create_item(db, sku=sku, **kwargs)


def _seed_demo_catalog(db: Session) -> None:
    by_sku = {}
    for sku, name, unit, component_type, reorder_point in DEMO_COMPONENTS:
        by_sku[sku] = _get_or_create_item(
            db,
            sku,
            name=name,
            item_type=ITEM_TYPE_COMPONENT,
            managed_unit=unit,
            component_type=component_type,
            reorder_point=reorder_point,
        )

    sku, name, lines = DEMO_ASSEMBLY
    assembly = _get_or_create_item(db, sku, name=name, item_type=ITEM_TYPE_ASSEMBLY)
    if find_current_revision(db, assembly.id) is None:
        create_revision(
            db,
            assembly.id,
            [{"component_item_id": by_sku[component_sku].id, "qty_per_unit": qty} for component_sku, qty in lines],
        )


def run_seed():
    ensure_sqlite_directory(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        seed_modules(db)
        db.flush()

        email = os.getenv("STOCKMATE_ADMIN_EMAIL")
        password = os.getenv("STOCKMATE_ADMIN_PASSWORD")
        if email and password:
            _ensure_admin(db, email, password)
        else:
            logger.info("STOCKMATE_ADMIN_EMAIL/STOCKMATE_ADMIN_PASSWORD not set; skipping admin user")

        if os.getenv("STOCKMATE_SEED_DEMO", "0") in TRUTHY:
            _seed_demo_catalog(db)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
