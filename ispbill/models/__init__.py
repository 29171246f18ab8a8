from .tenant import TenantOwned
from .customer import Customer
from .package import Package
from .router import Router
from .service import Service
from .invoice import Invoice
from .payment import Payment
from .ticket import Ticket
from .user import User
