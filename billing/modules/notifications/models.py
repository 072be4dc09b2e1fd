from billing.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, Text, Enum, Index, Uuid, text
from uuid import uuid4
from billing.common.mixins import TenantMixin, TimestampMixin
import enum


class NotificationSeverity(enum.Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


LOW_STOCK = "low_stock"


class Notification(Base, TenantMixin, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    type = Column(String(30), nullable=False, default=LOW_STOCK)
    title = Column(String(150), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(
        Enum(NotificationSeverity, values_callable=lambda levels: [s.value for s in levels], name="notification_severity"),
        nullable=False,
        default=NotificationSeverity.INFO
    )

    # Referencia al objeto que originó la alerta (producto, factura...)
    reference_id = Column(Uuid(as_uuid=True), nullable=True)
    reference_type = Column(String(30), nullable=True)
    link = Column(String(255), nullable=True)

    read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notifications_tenant_read", "tenant_id", "read"),
        # Una sola notificación activa (sin leer) por tipo y referencia
        Index(
            "uq_notifications_active_reference",
            "tenant_id", "type", "reference_id",
            unique=True,
            postgresql_where=text("NOT read"),
            sqlite_where=text("read = 0")
        ),
    )
