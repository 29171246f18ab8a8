from typing import Optional
from sqlmodel import Field, SQLModel


class Router(SQLModel, table=True):
    """
    Network router that provisions services.
    Only referenced here; provisioning talks to it outside this package.
    """

    __tablename__ = "routers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    host: str = Field(nullable=False, unique=True)
    is_enabled: bool = Field(default=True)
