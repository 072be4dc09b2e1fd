from billing.database.database import Base
from sqlalchemy import Column, Integer, String, UniqueConstraint, CheckConstraint, Uuid
from uuid import uuid4
from billing.common.mixins import TenantMixin, TimestampMixin
import enum


class DocumentType(enum.Enum):
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"
    QUOTE = "quote"
    PROFORMA = "proforma"
    DELIVERY_NOTE = "delivery_note"
    DRAFT = "draft"


DEFAULT_PREFIXES = {
    DocumentType.INVOICE.value: "FAC",
    DocumentType.CREDIT_NOTE.value: "NC",
    DocumentType.DEBIT_NOTE.value: "ND",
    DocumentType.QUOTE.value: "COT",
    DocumentType.PROFORMA.value: "PRO",
    DocumentType.DELIVERY_NOTE.value: "ALB",
    DocumentType.DRAFT.value: "BOR",
}


class DocumentSequence(Base, TenantMixin, TimestampMixin):
    """Secuencia de numeración por empresa y tipo de documento. Nunca se reinicia."""
    __tablename__ = "document_sequences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    # String libre: tipos no reconocidos también tienen su propia secuencia
    document_type = Column(String(30), nullable=False)
    last_number = Column(Integer, nullable=False, default=0)
    prefix = Column(String(10), nullable=False)
    padding = Column(Integer, nullable=False, default=5)

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_type", name="uq_sequence_tenant_document_type"),
        CheckConstraint("last_number >= 0", name="ck_sequence_last_number"),
        CheckConstraint("padding >= 1", name="ck_sequence_padding"),
    )
