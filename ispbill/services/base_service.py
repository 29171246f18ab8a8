# ispbill/services/base_service.py
"""
TenantScopedService: generic CRUD for tenant-owned models.
Every read goes through the tenant scope of the acting principal and every
create gets its owner tenant assigned before the first flush.
"""
from typing import TypeVar, Generic, Type, List, Dict, Any, Optional
from sqlmodel import Session, select

from ..core.errors import TenancyViolation
from ..core.tenancy import Principal
from .tenant_scope import TenantScopingEngine, tenant_scoping

# Generic type for tenant-owned SQLModel models
ModelType = TypeVar("ModelType")


class TenantScopedService(Generic[ModelType]):
    """
    Base class providing scoped CRUD operations.

    Usage:
        class MyService(TenantScopedService[MyModel]):
            def __init__(self, session: Session, principal: Principal):
                super().__init__(session, MyModel, principal)
    """

    def __init__(
        self,
        session: Session,
        model: Type[ModelType],
        principal: Principal,
        scoping: Optional[TenantScopingEngine] = None,
    ):
        """
        Args:
            session: SQLModel database session.
            model: The tenant-owned SQLModel class this service manages.
            principal: Acting principal; decides which rows are visible.
            scoping: Scoping engine (shared instance by default).
        """
        self.session = session
        self.model = model
        self.principal = principal
        self.scoping = scoping or tenant_scoping

    def _scoped(self, statement):
        return self.scoping.apply_read_scope(statement, self.principal)

    def get_all(self) -> List[ModelType]:
        """Retrieve all records visible to the principal."""
        statement = self._scoped(select(self.model).order_by(self.model.id))
        return self.session.exec(statement).all()

    def get_by_id(self, id: int) -> ModelType:
        """
        Retrieve a single visible record by primary key.

        Raises:
            TenancyViolation: if the record does not exist or belongs to
                another tenant (the two cases are indistinguishable).
        """
        statement = self._scoped(select(self.model).where(self.model.id == id))
        record = self.session.exec(statement).first()
        if not record:
            raise TenancyViolation(f"{self.model.__name__} {id} not found")
        return record

    def _check_parent_visible(self, record: ModelType) -> None:
        parent_link = getattr(self.model, "__tenant_parent__", None)
        if not parent_link:
            return
        parent_model, foreign_key = parent_link
        parent_id = getattr(record, foreign_key, None)
        if parent_id is None:
            return
        statement = self._scoped(select(parent_model).where(parent_model.id == parent_id))
        if self.session.exec(statement).first() is None:
            raise TenancyViolation(f"{parent_model.__name__} {parent_id} not found")

    def create(self, data: Dict[str, Any]) -> ModelType:
        """
        Create a new record owned by the principal's tenant (or the parent's).
        Only super admins may pick ``tenant_id`` explicitly.
        """
        data = dict(data)
        data.pop("id", None)
        if not self.principal.is_privileged:
            data.pop("tenant_id", None)

        new_record = self.model(**data)
        self._check_parent_visible(new_record)
        self.scoping.assign_owner_tenant(
            new_record, self.principal, self.scoping.parent_lookup_for(self.session)
        )

        try:
            self.session.add(new_record)
            self.session.commit()
            self.session.refresh(new_record)
            return new_record
        except Exception:
            self.session.rollback()
            raise

    def update(self, id: int, data: Dict[str, Any]) -> ModelType:
        """Update a visible record. Ownership and primary key cannot change."""
        record = self.get_by_id(id)

        for key, value in data.items():
            if key in ("id", "tenant_id"):
                continue
            setattr(record, key, value)

        try:
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
            return record
        except Exception:
            self.session.rollback()
            raise
