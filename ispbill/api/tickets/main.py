# ispbill/api/tickets/main.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from ...core.errors import TenancyViolation
from ...core.tenancy import Principal, require_support
from ...db.engine import get_session
from ...services.ticket_service import TicketManager
from .models import TicketCreate, TicketRead, TicketUpdate

router = APIRouter()


def get_ticket_manager(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_support),
) -> TicketManager:
    return TicketManager(session, principal)


@router.get("/tickets", response_model=List[TicketRead])
def list_tickets(
    status: Optional[str] = None,
    manager: TicketManager = Depends(get_ticket_manager),
):
    return manager.list_tickets(status)


@router.get("/tickets/{ticket_id}", response_model=TicketRead)
def get_ticket(ticket_id: int, manager: TicketManager = Depends(get_ticket_manager)):
    try:
        return manager.get_by_id(ticket_id)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/tickets", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(ticket: TicketCreate, manager: TicketManager = Depends(get_ticket_manager)):
    try:
        return manager.create(ticket.model_dump())
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/tickets/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: int,
    ticket_update: TicketUpdate,
    manager: TicketManager = Depends(get_ticket_manager),
):
    try:
        return manager.update(ticket_id, ticket_update.model_dump(exclude_unset=True))
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))
