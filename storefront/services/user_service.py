# storefront/services/user_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel
from storefront.domain.errors import EmailTaken, NotFound, StoreUnavailable, TransferFailed
from storefront.domain.schemas import UserCreate, UserRead
from storefront.repos.user_repo import UserRepo
from storefront.services.transfer_service import TransferService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    """
    Rejestracja i zakonczenie logowania. Tokeny wydaje warstwa auth (poza tym serwisem),
    tu tylko przeniesienie danych goscia gdy request niesie session id.
    """

    def __init__(self, db: Session, transfer_service: TransferService):
        self.repo = UserRepo(db)
        self.transfer_service = transfer_service

    def create_user(self, payload: UserCreate, session_id: str | None = None) -> Dict[str, Any]:
        # istniejace konto tylko przez complete_login, tozsamosc daje warstwa auth
        if payload.email and self.repo.get_by_email(payload.email):
            raise EmailTaken("Email is already registered")

        user = self.repo.create_user(UserModel(name=payload.name, email=payload.email))
        logger.info(f"Created user {user.id}")

        return {
            "user": UserRead.model_validate(user),
            "transfer": self._transfer(session_id, user.id),
        }

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        return UserRead.model_validate(user)

    def complete_login(self, user_id: int, session_id: str | None = None) -> Dict[str, Any]:
        user = self.get_user(user_id)
        return {"user": user, "transfer": self._transfer(session_id, user_id)}

    def _transfer(self, session_id: str | None, user_id: int) -> Dict[str, Any] | None:
        if not session_id:
            return None
        try:
            return self.transfer_service.transfer(session_id, user_id)
        except (TransferFailed, StoreUnavailable) as e:
            # dane goscia zostaja, transfer powtorzy sie przy nastepnym logowaniu
            logger.error(f"Guest transfer for user {user_id} failed: {e.message}")
            return {"transferred": False, "error": e.to_detail()}
