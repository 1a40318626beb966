#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.user import UserModel
from storefront.data.models.product import ProductModel
from storefront.data.models.variant import VariantModel
from storefront.data.models.product_media import ProductMediaModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.favorite import FavoriteModel
from storefront.data.models.order import OrderModel

__all__ = [
    "UserModel",
    "ProductModel",
    "VariantModel",
    "ProductMediaModel",
    "CartItemModel",
    "FavoriteModel",
    "OrderModel",
]
