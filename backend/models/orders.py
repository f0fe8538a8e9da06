# models/orders.py

from sqlalchemy import Column, Date, DateTime, Index, Integer, Numeric, String, Text, func

from db.base import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    order_account = Column(String(255))
    order_id = Column(String(100))            # external id, not unique across feeds
    channel_order_number = Column(String(100))
    channel_order_date = Column(DateTime)
    waybill_number = Column(String(100))
    pre_generated_waybill = Column(String(100))
    order_date = Column(Date, nullable=False)
    ref_invoice_number = Column(String(100))
    payment_method = Column(String(50))       # COD / PPD
    express = Column(String(50))
    pickup_warehouse = Column(String(255))
    consignee_name = Column(String(255))
    consignee_contact = Column(String(20))
    alternate_number = Column(String(20))
    address = Column(Text)
    city = Column(String(100))
    state = Column(String(100))
    pincode = Column(String(20))
    product_name = Column(String(500))
    quantity = Column(Integer, default=1, server_default="1")
    product_value = Column(Numeric(12, 2))
    sku = Column(String(100))
    order_value = Column(Numeric(12, 2))
    extra_charges = Column(Numeric(12, 2))
    total_amount = Column(Numeric(12, 2))
    cod_amount = Column(Numeric(12, 2))
    dimensions = Column(String(100))
    weight = Column(Numeric(10, 2))
    fulfillment_partner = Column(String(100))
    order_status = Column(String(100))
    added_on = Column(DateTime)
    delivered_date = Column(DateTime)
    rts_date = Column(DateTime)
    client_order_id = Column(String(100))

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_orders_order_id", "order_id"),
        Index("ix_orders_order_date", "order_date"),
        Index("ix_orders_order_status", "order_status"),
        Index("ix_orders_product_name", "product_name"),
        Index("ix_orders_sku", "sku"),
        Index("ix_orders_pincode", "pincode"),
        Index("ix_orders_city", "city"),
        Index("ix_orders_state", "state"),
        Index("ix_orders_payment_method", "payment_method"),
        Index("ix_orders_fulfillment_partner", "fulfillment_partner"),
        Index("ix_orders_channel_order_number", "channel_order_number"),
        Index("ix_orders_waybill_number", "waybill_number"),
        Index("ix_orders_client_order_id", "client_order_id"),
        Index("ix_orders_order_date_status", "order_date", "order_status"),
        Index("ix_orders_product_pincode", "product_name", "pincode"),
        Index("ix_orders_order_date_payment", "order_date", "payment_method"),
        Index("ix_orders_status_partner", "order_status", "fulfillment_partner"),
    )


# Columns written by the importer, in table order.
ORDER_COLUMNS: tuple[str, ...] = tuple(
    c.name for c in Order.__table__.columns if c.name not in {"id", "created_at", "updated_at"}
)
