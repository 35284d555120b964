from .customers import Customer
from .bills import SalesBill, SalesBillItem
from .collection_bills import CollectionBill

__all__ = [
    'Customer',
    'SalesBill', 'SalesBillItem',
    'CollectionBill',
]

# Storage kind -> mapped class, used by the SQL store adapter
MODELS_BY_KIND = {
    Customer.__tablename__: Customer,
    SalesBill.__tablename__: SalesBill,
    SalesBillItem.__tablename__: SalesBillItem,
    CollectionBill.__tablename__: CollectionBill,
}

# Storage kind -> column names; the document adapter fills absent ones with None
RECORD_FIELDS = {
    kind: tuple(column.key for column in model.__mapper__.columns)
    for kind, model in MODELS_BY_KIND.items()
}
