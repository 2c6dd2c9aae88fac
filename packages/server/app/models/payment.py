"""Gateway payment for a paid modpack."""

from decimal import Decimal
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Payment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "payments"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    modpack_id: uuid.UUID = Field(foreign_key="modpacks.id", nullable=False, index=True)
    gateway: str = Field(default="paypal", nullable=False)
    external_id: str = Field(nullable=False, unique=True, index=True)
    approval_url: Optional[str] = None
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    currency: str = Field(nullable=False, max_length=3)
    status: str = Field(default="pending", nullable=False)  # pending | completed | failed
    transaction_id: Optional[str] = None
    commission_amount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    publisher_amount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
