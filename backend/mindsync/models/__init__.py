from .tenancy import BusinessProfile
from .accounting import ChartOfAccount, Transaction
from .customers import Customer
from .inventory import Product, StockMovement
from .invoices import Invoice, InvoiceItem, InvoicePayment, InvoiceSequence

__all__ = [
    'BusinessProfile',
    'ChartOfAccount', 'Transaction',
    'Customer',
    'Product', 'StockMovement',
    'Invoice', 'InvoiceItem', 'InvoicePayment', 'InvoiceSequence',
]
