from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pizzeria.infrastructure.database import Base


class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, nullable=False, index=True, default="awaiting_confirmation")
    order_type = Column(String, nullable=False, default="delivery")

    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_street = Column(String)
    customer_zip = Column(String)
    customer_city = Column(String)

    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    # [{"name": ..., "percentage": "10"}] as priced at checkout
    discounts = Column(JSON, nullable=False, default=list)

    payment_method = Column(String, nullable=False, default="cash")
    payment_status = Column(String, nullable=False, default="pending")
    estimated_minutes = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    items = relationship(
        "OrderItemRow",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItemRow.position",
    )


class OrderItemRow(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    menu_item_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    size_name = Column(String)
    size_price = Column(Numeric(10, 2), nullable=False)
    # Line total at order time: (size price + extras) x quantity
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("OrderRow", back_populates="items")
    extras = relationship(
        "OrderItemExtraRow",
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItemExtraRow.id",
    )


class OrderItemExtraRow(Base):
    __tablename__ = "order_item_extras"

    id = Column(Integer, primary_key=True, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    extra_id = Column(String)
    extra_name = Column(String, nullable=False)
    extra_price = Column(Numeric(10, 2), nullable=False)

    item = relationship("OrderItemRow", back_populates="extras")


class PromotionRow(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DeliveryAreaRow(Base):
    __tablename__ = "delivery_areas"

    id = Column(Integer, primary_key=True, index=True)
    plz = Column(String, nullable=False)
    city = Column(String, nullable=False)


class RestaurantSettingRow(Base):
    """Key/value settings: delivery_fee, minimum_order_value, estimated_*_time, paypal_enabled."""
    __tablename__ = "restaurant_settings"

    setting_key = Column(String, primary_key=True)
    setting_value = Column(String)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
