# corgi_buddy/api/v1/bank.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.bank import BankStatusOut

router = APIRouter(prefix="/bank", tags=["bank"])


@router.get("/status", response_model=BankStatusOut)
async def bank_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    return BankStatusOut.from_model(container.bank.get_status(db))
