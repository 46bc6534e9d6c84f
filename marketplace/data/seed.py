# marketplace/data/seed.py
from decimal import Decimal

from marketplace.data.database import Base, SessionLocal, engine
from marketplace.data.models import (
    AddressModel,
    ProductModel,
    ProductVariantModel,
    UserModel,
    VendorModel,
)
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def seed():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(UserModel).first():
            logger.info("Database already seeded")
            return

        customer = UserModel(id=1, name="Alice Customer", email="alice@example.com")
        seller = UserModel(id=2, name="Bob Seller", email="bob@example.com")
        db.add_all([customer, seller])
        db.flush()

        vendor = VendorModel(user_id=seller.id, store_name="Bob's Gear", commission_rate=Decimal("15"))
        db.add(vendor)
        db.flush()

        keyboard = ProductModel(vendor_id=vendor.id, name="Keyboard", price=Decimal("199.99"), quantity=10)
        mouse = ProductModel(vendor_id=vendor.id, name="Mouse", price=Decimal("49.50"), quantity=25)
        shirt = ProductModel(vendor_id=vendor.id, name="T-Shirt", price=Decimal("25.00"), quantity=0)
        db.add_all([keyboard, mouse, shirt])
        db.flush()

        db.add_all([
            ProductVariantModel(product_id=shirt.id, name="M", price=Decimal("25.00"), quantity=5),
            ProductVariantModel(product_id=shirt.id, name="L", price=Decimal("27.00"), quantity=3),
        ])

        db.add(
            AddressModel(
                user_id=customer.id,
                full_name="Alice Customer",
                address_line1="1 Main St",
                city="Springfield",
                state="IL",
                postal_code="62701",
                country="US",
            )
        )

        db.commit()
        logger.info("Seed data created")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
