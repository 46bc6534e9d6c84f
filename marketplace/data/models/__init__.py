#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from marketplace.data.models.user import UserModel
from marketplace.data.models.vendor import VendorModel
from marketplace.data.models.product import ProductModel, ProductVariantModel
from marketplace.data.models.address import AddressModel
from marketplace.data.models.cart_item import CartItemModel
from marketplace.data.models.order import OrderModel, OrderItemModel
from marketplace.data.models.payment import PaymentModel
from marketplace.data.models.tracking import OrderTrackingModel
from marketplace.data.models.notification import NotificationModel

__all__ = [
    "UserModel",
    "VendorModel",
    "ProductModel",
    "ProductVariantModel",
    "AddressModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
    "OrderTrackingModel",
    "NotificationModel",
]
