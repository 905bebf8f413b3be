from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

WEIGHT = Numeric(14, 2)
MONEY = Numeric(14, 2)


class Base(DeclarativeBase):
    pass


class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_cognito_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_cognito_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone_number: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    shipments = relationship("Shipment", back_populates="user")
    assignments = relationship("StockAssignment", back_populates="user")


class Stock(Base):
    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_code: Mapped[str] = mapped_column(String(50), nullable=False)
    broker: Mapped[str] = mapped_column(String(10), nullable=False)
    lot_no: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    mark: Mapped[str] = mapped_column(String(255), nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    invoice_no: Mapped[str | None] = mapped_column(String(100))
    bags: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weight: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False, default=Decimal("0"))
    purchase_value: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_purchase_value: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    aging_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    bgt_commission: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    maersk_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    commission: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    net_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    batch_number: Mapped[str | None] = mapped_column(String(100), index=True)
    low_stock_threshold: Mapped[Decimal | None] = mapped_column(WEIGHT)
    admin_cognito_id: Mapped[str | None] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    assignments = relationship("StockAssignment", back_populates="stock")


class StockAssignment(Base):
    __tablename__ = "stock_assignments"
    __table_args__ = (
        UniqueConstraint("stocks_id", "user_cognito_id", name="uq_stock_assignment_stock_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stocks_id: Mapped[int] = mapped_column(Integer, ForeignKey("stocks.id"), nullable=False, index=True)
    user_cognito_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.user_cognito_id"), nullable=False, index=True
    )
    assigned_weight: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    stock = relationship("Stock", back_populates="assignments")
    user = relationship("User", back_populates="assignments")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_cognito_id", "stocks_id", name="uq_favorite_user_stock"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_cognito_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    stocks_id: Mapped[int] = mapped_column(Integer, ForeignKey("stocks.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Shipment(Base):
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_cognito_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.user_cognito_id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    consignee: Mapped[str] = mapped_column(String(255), nullable=False)
    vessel: Mapped[str] = mapped_column(String(20), nullable=False)
    shipmark: Mapped[str] = mapped_column(String(255), nullable=False)
    packaging_instructions: Mapped[str] = mapped_column(String(50), nullable=False)
    additional_instructions: Mapped[str | None] = mapped_column(Text)
    shipment_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user = relationship("User", back_populates="shipments")
    items = relationship(
        "ShipmentItem",
        back_populates="shipment",
        cascade="all, delete-orphan",
        order_by="ShipmentItem.id",
    )


class ShipmentItem(Base):
    __tablename__ = "shipment_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stocks_id: Mapped[int] = mapped_column(Integer, ForeignKey("stocks.id"), nullable=False, index=True)
    assigned_weight: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False)

    shipment = relationship("Shipment", back_populates="items")
    stock = relationship("Stock")


class StockHistory(Base):
    """Append-only stock journal.

    ``stocks_id`` and ``shipment_id`` carry no foreign keys; entries outlive the
    lots and shipments they describe.
    """

    __tablename__ = "stock_history"
    __table_args__ = (Index("ix_stock_history_stock_timestamp", "stocks_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stocks_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_cognito_id: Mapped[str | None] = mapped_column(String(128), index=True)
    admin_cognito_id: Mapped[str | None] = mapped_column(String(128), index=True)
    shipment_id: Mapped[int | None] = mapped_column(Integer, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)

    stock = relationship("Stock", primaryjoin="foreign(StockHistory.stocks_id) == Stock.id", viewonly=True)
    shipment = relationship(
        "Shipment", primaryjoin="foreign(StockHistory.shipment_id) == Shipment.id", viewonly=True
    )
    admin = relationship(
        "Admin", primaryjoin="foreign(StockHistory.admin_cognito_id) == Admin.admin_cognito_id", viewonly=True
    )


class ShipmentHistory(Base):
    __tablename__ = "shipment_history"
    __table_args__ = (Index("ix_shipment_history_shipment_timestamp", "shipment_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipment_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_cognito_id: Mapped[str | None] = mapped_column(String(128), index=True)
    admin_cognito_id: Mapped[str | None] = mapped_column(String(128), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)

    shipment = relationship(
        "Shipment", primaryjoin="foreign(ShipmentHistory.shipment_id) == Shipment.id", viewonly=True
    )
    admin = relationship(
        "Admin", primaryjoin="foreign(ShipmentHistory.admin_cognito_id) == Admin.admin_cognito_id", viewonly=True
    )
