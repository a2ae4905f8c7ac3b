from .user import User  # noqa: F401
from .admin_user import AdminUser  # noqa: F401
from .seller import Seller, SellerApplication  # noqa: F401
from .product import Product  # noqa: F401
from .order import Order, OrderItem  # noqa: F401
from .seller_balance import SellerBalance  # noqa: F401
from .seller_transaction import SellerTransaction  # noqa: F401
from .withdrawal import WithdrawalRequest  # noqa: F401
from .payout import SellerPayout  # noqa: F401
from .stock_restoration import StockRestoration  # noqa: F401
from .notification import Notification  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
