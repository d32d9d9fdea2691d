from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Date, Numeric, JSON
from labcrm.core.base import Base, TimestampedTenantMixin

class Patient(Base, TimestampedTenantMixin):
    __tablename__ = "patients"

    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str] = mapped_column(String(32))
    contact_date: Mapped[date] = mapped_column(Date)
    appointment_date: Mapped[date] = mapped_column(Date, index=True)
    appointment_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM
    status: Mapped[str] = mapped_column(String(24), default="agendado")  # agendado, veio, nao_veio, sem_interesse, fechado
    closed_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    media_origin: Mapped[str] = mapped_column(String(32))  # facebook, instagram, indicacao, guia_campanha, claudio
    procedures: Mapped[list] = mapped_column(JSON, default=list)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)
