# ispbill/api/packages/main.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from ...core.tenancy import Principal, require_billing, require_super_admin
from ...db.engine import get_session
from ...services.package_service import PackageService
from .models import Package, PackageCreate, PackageUpdate

router = APIRouter()


# --- Dependency Injector ---
def get_package_service(session: Session = Depends(get_session)) -> PackageService:
    return PackageService(session)


# --- Endpoints ---


@router.get("/packages", response_model=List[Package])
def api_get_all_packages(
    active_only: bool = False,
    search: Optional[str] = None,
    service: PackageService = Depends(get_package_service),
    principal: Principal = Depends(require_billing),
):
    return service.get_all_packages(active_only=active_only, search=search)


@router.get("/packages/{package_id}", response_model=Package)
def api_get_package(
    package_id: int,
    service: PackageService = Depends(get_package_service),
    principal: Principal = Depends(require_billing),
):
    try:
        return service.get_package_by_id(package_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/packages", response_model=Package, status_code=status.HTTP_201_CREATED)
def api_create_package(
    package: PackageCreate,
    service: PackageService = Depends(get_package_service),
    principal: Principal = Depends(require_super_admin),
):
    try:
        return service.create_package(package.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/packages/{package_id}", response_model=Package)
def api_update_package(
    package_id: int,
    package_update: PackageUpdate,
    service: PackageService = Depends(get_package_service),
    principal: Principal = Depends(require_super_admin),
):
    update_fields = package_update.model_dump(exclude_unset=True)
    if not update_fields:
        raise HTTPException(status_code=400, detail="No fields to update provided.")
    try:
        return service.update_package(package_id, update_fields)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
