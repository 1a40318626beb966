# storefront/api/routers/sessions.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_guest_store, http_error
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import SessionOut
from storefront.repos.guest_store import GuestSessionStore

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/", response_model=SessionOut, status_code=201)
def create_session(guest_store: GuestSessionStore = Depends(get_guest_store)):
    try:
        return guest_store.create_session()
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: str, guest_store: GuestSessionStore = Depends(get_guest_store)):
    try:
        session = guest_store.get_session(session_id)
    except StorefrontError as e:
        raise http_error(e)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.delete("/{session_id}", status_code=204)
def end_session(session_id: str, guest_store: GuestSessionStore = Depends(get_guest_store)):
    try:
        guest_store.end_session(session_id)
    except StorefrontError as e:
        raise http_error(e)
