from .inventory import Product, StockTransaction
from .purchasing import Company, PurchaseInvoice, PurchaseInvoiceLine, CompanyTransaction
from .customers import Customer, Debt, Payment
from .sales import Sale, SaleLine, SaleMiscellaneous
from .finance import Income, Expense

__all__ = [
    'Product', 'StockTransaction',
    'Company', 'PurchaseInvoice', 'PurchaseInvoiceLine', 'CompanyTransaction',
    'Customer', 'Debt', 'Payment',
    'Sale', 'SaleLine', 'SaleMiscellaneous',
    'Income', 'Expense',
]
