from .base import Base  # noqa: F401
from .user import User  # noqa: F401
from .product import Product, ProductCategory, Review  # noqa: F401
from .device import Device, DeviceLog, DeviceLogLevel, DeviceStatus  # noqa: F401
from .order import CartItem, Order, OrderItem, OrderStatus  # noqa: F401
from .service_ticket import ServiceTicket, TicketPriority, TicketStatus  # noqa: F401
