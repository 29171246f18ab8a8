# ispbill/api/customers/main.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ...core.errors import TenancyViolation
from ...core.tenancy import Principal, require_billing
from ...db.engine import get_session
from ...services.customer_service import CustomerManager, ServiceManager
from .models import Customer, CustomerCreate, CustomerUpdate, Service, ServiceCreate

router = APIRouter()


# --- Dependency Injectors ---
def get_customer_manager(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_billing),
) -> CustomerManager:
    return CustomerManager(session, principal)


def get_service_manager(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_billing),
) -> ServiceManager:
    return ServiceManager(session, principal)


# --- Customer Endpoints ---


@router.get("/customers", response_model=list[Customer])
def api_get_all_customers(manager: CustomerManager = Depends(get_customer_manager)):
    return manager.get_all()


@router.get("/customers/{customer_id}", response_model=Customer)
def api_get_customer(customer_id: int, manager: CustomerManager = Depends(get_customer_manager)):
    try:
        return manager.get_by_id(customer_id)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/customers", response_model=Customer, status_code=status.HTTP_201_CREATED)
def api_create_customer(
    customer: CustomerCreate,
    manager: CustomerManager = Depends(get_customer_manager),
):
    return manager.create(customer.model_dump())


@router.put("/customers/{customer_id}", response_model=Customer)
def api_update_customer(
    customer_id: int,
    customer_update: CustomerUpdate,
    manager: CustomerManager = Depends(get_customer_manager),
):
    update_fields = customer_update.model_dump(exclude_unset=True)
    if not update_fields:
        raise HTTPException(status_code=400, detail="No fields to update provided.")
    try:
        return manager.update(customer_id, update_fields)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- Service Endpoints ---


@router.get("/customers/{customer_id}/services", response_model=list[Service])
def api_get_customer_services(
    customer_id: int,
    customers: CustomerManager = Depends(get_customer_manager),
    manager: ServiceManager = Depends(get_service_manager),
):
    try:
        customers.get_by_id(customer_id)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))
    return manager.get_services_for_customer(customer_id)


@router.post(
    "/customers/{customer_id}/services",
    response_model=Service,
    status_code=status.HTTP_201_CREATED,
)
def api_create_customer_service(
    customer_id: int,
    service_data: ServiceCreate,
    manager: ServiceManager = Depends(get_service_manager),
):
    try:
        return manager.create_service(customer_id, service_data.model_dump())
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="PPPoE username already in use")
