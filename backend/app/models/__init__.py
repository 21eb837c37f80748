"""Database models"""
from app.models.item import Item, ItemUnit
from app.models.inventory import ItemBatch
from app.models.storage_transaction import StorageTransaction, StorageTransactionLine
from app.models.partner import Supplier, Employee

__all__ = [
    # Item master
    "Item",
    "ItemUnit",
    # Inventory
    "ItemBatch",
    # Storage transactions
    "StorageTransaction",
    "StorageTransactionLine",
    # Collaborators
    "Supplier",
    "Employee",
]
