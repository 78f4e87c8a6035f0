from sqlalchemy.orm import declarative_base

Base = declarative_base()

# --------------------------------------------------
# Users & catalogue
# --------------------------------------------------
from .profiles import Profile  # noqa: F401
from .products import Product  # noqa: F401

# --------------------------------------------------
# Orders & affiliate attribution
# --------------------------------------------------
from .affiliate_links import AffiliateLink  # noqa: F401
from .orders import Order, OrderItem  # noqa: F401

# --------------------------------------------------
# Money movements
# --------------------------------------------------
from .transactions import Transaction  # noqa: F401
from .withdrawals import Withdrawal  # noqa: F401
