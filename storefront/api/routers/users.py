# storefront/api/routers/users.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import get_guest_store, get_lock_service, get_optional_session_id, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import UserCreate, UserRead, UserSessionOut
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.lock_service import LockService
from storefront.services.transfer_service import TransferService
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def get_service(
    db: Session = Depends(get_db),
    guest_store: GuestSessionStore = Depends(get_guest_store),
    lock_service: LockService = Depends(get_lock_service),
) -> UserService:
    return UserService(db, TransferService(db, guest_store, lock_service))


@router.post("/", response_model=UserSessionOut, status_code=201)
def create_user(
    payload: UserCreate,
    session_id: str | None = Depends(get_optional_session_id),
    service: UserService = Depends(get_service),
):
    """Rejestracja; koszyk i ulubione goscia (X-Session-Id) przechodza na konto."""
    try:
        return service.create_user(payload, session_id)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, service: UserService = Depends(get_service)):
    try:
        return service.get_user(user_id)
    except StorefrontError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{user_id}/login", response_model=UserSessionOut)
def complete_login(
    user_id: int,
    session_id: str | None = Depends(get_optional_session_id),
    service: UserService = Depends(get_service),
):
    """
    Wolane przez warstwe auth po weryfikacji danych logowania.
    Przenosi koszyk i ulubione goscia na konto.
    """
    try:
        return service.complete_login(user_id, session_id)
    except StorefrontError as e:
        raise http_error(e)
