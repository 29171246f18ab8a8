# ispbill/services/package_service.py
import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, or_, select

from ..models import Package

logger = logging.getLogger(__name__)


class PackageService:
    """Shared package catalog. Not tenant-owned: every tenant sells the same packages."""

    def __init__(self, session: Session):
        self.session = session

    def get_all_packages(self, active_only: bool = False, search: Optional[str] = None) -> List[Package]:
        statement = select(Package)
        if active_only:
            statement = statement.where(Package.is_active == True)  # noqa: E712
        if search:
            pattern = f"%{search}%"
            statement = statement.where(or_(Package.name.ilike(pattern), Package.speed.ilike(pattern)))
        return self.session.exec(statement.order_by(Package.price, Package.id)).all()

    def get_package_by_id(self, package_id: int) -> Package:
        package = self.session.get(Package, package_id)
        if not package:
            raise ValueError(f"Package {package_id} not found")
        return package

    def create_package(self, package_data: Dict[str, Any]) -> Package:
        existing = self.session.exec(
            select(Package).where(Package.name == package_data["name"])
        ).first()
        if existing:
            raise ValueError(f"Package '{package_data['name']}' already exists")

        try:
            new_package = Package(**package_data)
            self.session.add(new_package)
            self.session.commit()
            self.session.refresh(new_package)
        except Exception:
            self.session.rollback()
            raise
        logger.info(f"Package {new_package.id} '{new_package.name}' created")
        return new_package

    def update_package(self, package_id: int, update_data: Dict[str, Any]) -> Package:
        package = self.get_package_by_id(package_id)
        for key, value in update_data.items():
            setattr(package, key, value)
        self.session.add(package)
        self.session.commit()
        self.session.refresh(package)
        return package
