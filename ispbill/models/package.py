from decimal import Decimal
from typing import Optional
from sqlmodel import Field, SQLModel


class Package(SQLModel, table=True):
    """Internet package sold to customers. Shared catalog, not tenant-owned."""

    __tablename__ = "packages"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    speed: str = Field(nullable=False)  # ej. "20 Mbps"
    price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    description: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
