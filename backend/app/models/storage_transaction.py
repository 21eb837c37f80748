"""
Storage transaction models (warehouse import / export documents)
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class StorageTransaction(Base):
    """Storage transaction header"""
    __tablename__ = "storage_transactions"

    id = Column(Integer, primary_key=True, index=True)

    # PN-20260105-001 (import) / PX-20260105-001 (export)
    transaction_code = Column(String(50), unique=True, nullable=False, index=True)

    # IMPORT, EXPORT
    transaction_type = Column(String(20), nullable=False, index=True)
    transaction_date = Column(Date, nullable=False)

    # Export only: USAGE, DISPOSAL, RETURN
    export_type = Column(String(20), nullable=True)
    reference_code = Column(String(100), nullable=True)
    department_name = Column(String(100), nullable=True)
    requested_by = Column(String(100), nullable=True)

    # Import only
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    invoice_number = Column(String(100), unique=True, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)

    # Status workflow
    status = Column(String(30), default="COMPLETED", nullable=False)
    # DRAFT, PENDING_APPROVAL, APPROVED, REJECTED
    approval_status = Column(String(30), default="PENDING_APPROVAL", nullable=False)

    # Sum of |line_value| over all lines
    total_value = Column(Numeric(18, 4), default=0, nullable=False)

    # Audit
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    supplier = relationship("Supplier")
    created_by = relationship("Employee")
    lines = relationship(
        "StorageTransactionLine",
        back_populates="transaction",
        order_by="StorageTransactionLine.line_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<StorageTransaction {self.transaction_code}: {self.transaction_type}>"


class StorageTransactionLine(Base):
    """One batch movement inside a storage transaction"""
    __tablename__ = "storage_transaction_lines"

    id = Column(Integer, primary_key=True, index=True)

    transaction_id = Column(
        Integer, ForeignKey("storage_transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number = Column(Integer, nullable=False)

    batch_id = Column(Integer, ForeignKey("item_batches.id"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("item_units.id"), nullable=True)
    item_code = Column(String(50), nullable=False)

    # Signed, base units: positive = import, negative = export
    quantity_change = Column(Integer, nullable=False)

    # Cost per base unit
    unit_price = Column(Numeric(18, 4), nullable=False, default=0)
    line_value = Column(Numeric(18, 4), nullable=False, default=0)

    notes = Column(Text, nullable=True)

    # Relationships
    transaction = relationship("StorageTransaction", back_populates="lines")
    batch = relationship("ItemBatch")
    unit = relationship("ItemUnit")

    def __repr__(self):
        return f"<StorageTransactionLine {self.line_number}: {self.quantity_change}>"
