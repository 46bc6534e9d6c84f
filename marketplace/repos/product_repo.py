# marketplace/repos/product_repo.py
from sqlalchemy import select, update

from marketplace.data.models.product import ProductModel, ProductVariantModel
from marketplace.repos.base import BaseRepo


class ProductRepo(BaseRepo):

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.get(ProductVariantModel, variant_id)

    def current_quantity(self, product_id: int, variant_id: int | None) -> int:
        #odczyt kolumny prosto z bazy, z pominieciem identity map
        if variant_id is not None:
            stmt = select(ProductVariantModel.quantity).where(ProductVariantModel.id == variant_id)
        else:
            stmt = select(ProductModel.quantity).where(ProductModel.id == product_id)
        return self.db.execute(stmt).scalar_one_or_none() or 0

    def decrement_quantity(self, product_id: int, variant_id: int | None, quantity: int) -> int:
        #atomowe check-and-decrement
        #UPDATE products SET quantity = quantity - 2 WHERE id = 1 AND quantity >= 2
        if variant_id is not None:
            stmt = (
                update(ProductVariantModel)
                .where(
                    ProductVariantModel.id == variant_id,
                    ProductVariantModel.product_id == product_id,
                    ProductVariantModel.quantity >= quantity,
                )
                .values(quantity=ProductVariantModel.quantity - quantity)
            )
        else:
            stmt = (
                update(ProductModel)
                .where(ProductModel.id == product_id, ProductModel.quantity >= quantity)
                .values(quantity=ProductModel.quantity - quantity)
            )
        return self.conditional_update(stmt)

    def increment_quantity(self, product_id: int, variant_id: int | None, quantity: int) -> int:
        if variant_id is not None:
            stmt = (
                update(ProductVariantModel)
                .where(ProductVariantModel.id == variant_id)
                .values(quantity=ProductVariantModel.quantity + quantity)
            )
        else:
            stmt = (
                update(ProductModel)
                .where(ProductModel.id == product_id)
                .values(quantity=ProductModel.quantity + quantity)
            )
        return self.conditional_update(stmt)
