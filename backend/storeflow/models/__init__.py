from .auth import User, SessionToken
from .catalog import Product
from .payments import Payment
from .demand_notices import DemandNotice
from .quotations import Quotation, QuotationItem
from .orders import Order, OrderItem, OrderTax, ReturnTransaction, ReturnItem, RefundPayment
from .settings import CommissionSetting, TaxSetting
from .timekeeping import AttendanceLog, BreakLog
from .documents import DocumentSequence, ActivityEvent

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Payment',
    'DemandNotice',
    'Quotation', 'QuotationItem',
    'Order', 'OrderItem', 'OrderTax', 'ReturnTransaction', 'ReturnItem', 'RefundPayment',
    'CommissionSetting', 'TaxSetting',
    'AttendanceLog', 'BreakLog',
    'DocumentSequence', 'ActivityEvent',
]
