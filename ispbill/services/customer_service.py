# ispbill/services/customer_service.py
"""
Customer and Service management on top of TenantScopedService.
"""
import logging
from typing import List, Dict, Any
from sqlmodel import Session, select

from ..core.tenancy import Principal
from ..models import Customer, Package, Service
from .base_service import TenantScopedService

logger = logging.getLogger(__name__)


class CustomerManager(TenantScopedService[Customer]):
    def __init__(self, session: Session, principal: Principal):
        super().__init__(session, Customer, principal)


class ServiceManager(TenantScopedService[Service]):
    """
    Services are created under a customer and inherit its tenant.
    The package catalog is shared between tenants.
    """

    def __init__(self, session: Session, principal: Principal):
        super().__init__(session, Service, principal)

    def get_services_for_customer(self, customer_id: int) -> List[Service]:
        statement = self._scoped(
            select(Service).where(Service.customer_id == customer_id).order_by(Service.id)
        )
        return self.session.exec(statement).all()

    def create_service(self, customer_id: int, data: Dict[str, Any]) -> Service:
        """
        Raises:
            TenancyViolation: customer not visible to the principal.
            ValueError: unknown package.
        """
        package = self.session.get(Package, data.get("package_id"))
        if package is None:
            raise ValueError(f"Package {data.get('package_id')} does not exist")

        service_data = dict(data)
        service_data["customer_id"] = customer_id
        new_service = self.create(service_data)
        logger.info(
            f"Service {new_service.id} created for customer {customer_id} "
            f"(tenant {new_service.tenant_id})"
        )
        return new_service
