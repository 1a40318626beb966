# storefront/services/transfer_service.py
from typing import Any, Dict

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.domain.errors import StoreUnavailable, TransferFailed
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.favorites_repo import FavoritesRepo
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.lock_service import LockService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class TransferService:
    """
    Przeniesienie koszyka i ulubionych goscia do konta przy logowaniu/rejestracji.

    1. odczyt koszyka i ulubionych z Redis
    2. pusto -> no-op
    3-6. jedna transakcja w bazie: ilosci sumowane (existing + guest),
         ulubione dodawane tylko gdy ich brak, commit
    7. dopiero po commicie usuniecie z Redis dokladnie tego co przeniesiono;
       co gosc dodal w trakcie zostaje w sesji na nastepny transfer

    Gdy transakcja padnie -> rollback, dane goscia zostaja nietkniete,
    kolejne logowanie moze powtorzyc transfer.
    """

    def __init__(self, db: Session, guest_store: GuestSessionStore, lock_service: LockService):
        self.db = db
        self.cart_repo = CartRepo(db)
        self.favorites_repo = FavoritesRepo(db)
        self.catalog = CatalogRepo(db)
        self.guest_store = guest_store
        self.lock_service = lock_service

    def transfer(self, session_id: str, user_id: int) -> Dict[str, Any]:
        token = self.lock_service.acquire_transfer_lock(session_id)
        if token is None:
            raise TransferFailed(f"Transfer of guest session {session_id} is already in progress")

        try:
            return self._transfer(session_id, user_id)
        finally:
            try:
                self.lock_service.release_transfer_lock(session_id, token)
            except RedisError as e:
                # lock i tak wygasnie po ttl
                logger.warning(f"Failed to release transfer lock for {session_id}: {e}")

    def _transfer(self, session_id: str, user_id: int) -> Dict[str, Any]:
        cart = self.guest_store.get_cart(session_id)
        favorites = self.guest_store.get_favorites(session_id)

        result = {
            "transferred": False,
            "cart_lines_merged": 0,
            "favorites_added": 0,
            "skipped_variants": [],
            "skipped_products": [],
            "ephemeral_cleared": False,
            "guest_items_remaining": 0,
        }

        if not cart and not favorites:
            logger.info(f"Guest session {session_id} has nothing to transfer")
            return result

        logger.info(
            f"Transferring guest session {session_id} to user {user_id}: "
            f"{len(cart)} cart line(s), {len(favorites)} favorite(s)"
        )

        try:
            known_variants = self.catalog.get_variants_with_products(line.variant_id for line in cart)
            known_products = self.catalog.get_products(fav.product_id for fav in favorites)

            for line in cart:
                if line.variant_id not in known_variants:
                    result["skipped_variants"].append(line.variant_id)
                    continue
                # suma intencji zakupowych, nie last-write-wins; stany sprawdzi validate() przy checkout
                self.cart_repo.merge_line(user_id, line.variant_id, line.quantity)
                result["cart_lines_merged"] += 1

            for fav in favorites:
                if fav.product_id not in known_products:
                    result["skipped_products"].append(fav.product_id)
                    continue
                if self.favorites_repo.add_if_missing(user_id, fav.product_id):
                    result["favorites_added"] += 1

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Transfer of guest session {session_id} to user {user_id} rolled back: {e}")
            raise TransferFailed("Guest cart could not be merged, guest data kept for retry") from e

        result["transferred"] = True

        try:
            # tylko to co odczytano w kroku 1, zmiany goscia w trakcie transferu zostaja
            result["guest_items_remaining"] = self.guest_store.take_transferred(
                session_id,
                {line.variant_id: line.quantity for line in cart},
                [fav.product_id for fav in favorites],
            )
            result["ephemeral_cleared"] = True
        except StoreUnavailable:
            logger.error(
                f"Guest session {session_id} merged into user {user_id} but could not be cleared"
            )

        logger.info(
            f"Guest session {session_id} transferred to user {user_id}: "
            f"{result['cart_lines_merged']} line(s), {result['favorites_added']} favorite(s)"
        )
        return result
