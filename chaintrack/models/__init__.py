# Import every model so Base.metadata knows all tables
from chaintrack.models.users import User, Role
from chaintrack.models.product import Product
from chaintrack.models.unit import ProductUnit, UnitStatus
from chaintrack.models.stock import BulkStock, BulkMovement, MovementKind
from chaintrack.models.order import Order, OrderStatus, order_units
from chaintrack.models.cart import Cart, CartItem
from chaintrack.models.log import Log
