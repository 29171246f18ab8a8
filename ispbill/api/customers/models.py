# ispbill/api/customers/models.py
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from ...core.constants import CustomerStatus, ServiceStatus


# --- Customers ---
class Customer(BaseModel):
    id: int
    tenant_id: int | None = None
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    status: CustomerStatus
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class CustomerCreate(BaseModel):
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    status: CustomerStatus = CustomerStatus.PENDING_SURVEY
    # Honored for super admins only
    tenant_id: int | None = None
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class CustomerUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    status: CustomerStatus | None = None
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


# --- Services ---
class Service(BaseModel):
    id: int
    tenant_id: int | None = None
    customer_id: int
    package_id: int
    router_id: int | None = None
    username_pppoe: str | None = None
    ip_address: str | None = None
    status: ServiceStatus
    activation_date: date | None = None
    expiry_date: date | None = None
    model_config = ConfigDict(from_attributes=True)


class ServiceCreate(BaseModel):
    package_id: int
    router_id: int | None = None
    username_pppoe: str | None = None
    ip_address: str | None = None
    status: ServiceStatus = ServiceStatus.PENDING
    activation_date: date | None = None
    expiry_date: date | None = None
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

