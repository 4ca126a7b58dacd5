from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base

ITEM_TYPE_COMPONENT = "component"
ITEM_TYPE_ASSEMBLY = "assembly"

TXN_IN = "IN"
TXN_OUT = "OUT"
TXN_ADJUST = "ADJUST"

QTY_TYPE = Numeric(18, 6)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    module_access = relationship("UserModuleAccess", back_populates="user", cascade="all, delete-orphan")


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True)
    key = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)


class UserModuleAccess(Base):
    __tablename__ = "user_module_access"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)

    user = relationship("User", back_populates="module_access")
    module = relationship("Module")

    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_user_module_access"),
    )


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    sku = Column(String(100), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    item_type = Column(Enum(ITEM_TYPE_COMPONENT, ITEM_TYPE_ASSEMBLY, name="item_type"), nullable=False)
    managed_unit = Column(Enum("g", "pcs", name="managed_unit"), nullable=False, default="pcs")
    pack_qty = Column(QTY_TYPE, nullable=True)
    reorder_point = Column(QTY_TYPE, nullable=True)
    stock_managed = Column(Boolean, default=True, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    component = relationship("ComponentDetail", back_populates="item", uselist=False, cascade="all, delete-orphan")
    assembly = relationship("AssemblyDetail", back_populates="item", uselist=False, cascade="all, delete-orphan")
    bom_revisions = relationship(
        "BomRevision",
        back_populates="assembly_item",
        cascade="all, delete-orphan",
        order_by="BomRevision.rev_no",
    )

    __table_args__ = (
        CheckConstraint("pack_qty IS NULL OR pack_qty > 0", name="ck_items_pack_qty_positive"),
        CheckConstraint("reorder_point IS NULL OR reorder_point >= 0", name="ck_items_reorder_point_non_negative"),
    )

    @property
    def detail(self):
        """Type-specific attributes, selected by item_type."""
        if self.item_type == ITEM_TYPE_ASSEMBLY:
            return self.assembly
        return self.component

    @property
    def is_assembly(self) -> bool:
        return self.item_type == ITEM_TYPE_ASSEMBLY

    @property
    def component_type(self):
        return self.component.component_type if self.component else None


class ComponentDetail(Base):
    __tablename__ = "components"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True)
    component_type = Column(
        Enum("material", "part", "consumable", name="component_type"),
        nullable=False,
        default="material",
    )
    manufacturer = Column(String(200), nullable=True)
    color = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("Item", back_populates="component")


class AssemblyDetail(Base):
    __tablename__ = "assemblies"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True)
    manufacturer = Column(String(200), nullable=True)
    total_weight = Column(QTY_TYPE, nullable=True)
    pack_size = Column(String(100), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("Item", back_populates="assembly")


class BomRevision(Base):
    __tablename__ = "bom_revisions"

    id = Column(Integer, primary_key=True)
    assembly_item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    rev_no = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    assembly_item = relationship("Item", back_populates="bom_revisions")
    lines = relationship(
        "BomLine",
        back_populates="revision",
        cascade="all, delete-orphan",
        order_by="BomLine.component_item_id",
    )

    __table_args__ = (
        UniqueConstraint("assembly_item_id", "rev_no", name="uq_bom_revision_assembly_rev"),
        CheckConstraint("rev_no > 0", name="ck_bom_revisions_rev_no_positive"),
    )


class BomLine(Base):
    __tablename__ = "bom_lines"

    revision_id = Column(Integer, ForeignKey("bom_revisions.id", ondelete="CASCADE"), primary_key=True)
    component_item_id = Column(Integer, ForeignKey("items.id"), primary_key=True, index=True)
    qty_per_unit = Column(QTY_TYPE, nullable=False)
    note = Column(Text, nullable=True)

    revision = relationship("BomRevision", back_populates="lines")
    component_item = relationship("Item")

    __table_args__ = (
        CheckConstraint("qty_per_unit > 0", name="ck_bom_lines_qty_per_unit_positive"),
    )


class StockTransaction(Base):
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    qty = Column(QTY_TYPE, nullable=False)
    transaction_type = Column(Enum(TXN_IN, TXN_OUT, TXN_ADJUST, name="stock_transaction_type"), nullable=False)
    direction = Column(Enum(TXN_IN, TXN_OUT, name="stock_direction"), nullable=False)
    posting_group = Column(String(36), nullable=True, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("Item")

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_stock_transactions_qty_positive"),
        CheckConstraint(
            "transaction_type = 'ADJUST' "
            "OR (transaction_type = 'IN' AND direction = 'IN') "
            "OR (transaction_type = 'OUT' AND direction = 'OUT')",
            name="ck_stock_transactions_direction_matches_type",
        ),
        Index("ix_stock_transactions_item_created", "item_id", "created_at"),
    )

    @property
    def signed_qty(self) -> Decimal:
        qty = Decimal(self.qty or 0)
        return -qty if self.direction == TXN_OUT else qty
