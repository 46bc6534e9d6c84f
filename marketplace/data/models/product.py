from sqlalchemy import Column, Integer, ForeignKey, String, Numeric, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from marketplace.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),)

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    #stan magazynowy - jedyne zrodlo prawdy
    quantity = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="active")  # active, draft, archived

    vendor = relationship("VendorModel")
    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_variant_quantity_non_negative"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("ProductModel", back_populates="variants")
