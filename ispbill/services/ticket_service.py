# ispbill/services/ticket_service.py
from typing import Optional
from sqlmodel import Session, select

from ..core.tenancy import Principal
from ..models import Ticket
from .base_service import TenantScopedService


class TicketManager(TenantScopedService[Ticket]):
    """Support tickets. A ticket takes the tenant of its customer."""

    def __init__(self, session: Session, principal: Principal):
        super().__init__(session, Ticket, principal)

    def list_tickets(self, status: Optional[str] = None):
        statement = select(Ticket).order_by(Ticket.created_at.desc())
        if status:
            statement = statement.where(Ticket.status == status)
        return self.session.exec(self._scoped(statement)).all()
