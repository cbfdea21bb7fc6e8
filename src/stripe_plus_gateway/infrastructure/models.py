"""SQLAlchemy ORM models for the Stripe Plus gateway."""

from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stripe_plus_gateway.infrastructure.database import Base


class CustomerMapping(Base):
    """
    Link between a local billing contact and a Stripe customer.

    One row per contact, one contact per Stripe customer.
    """

    __tablename__ = "stripe_plus_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    contact_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True, comment="Local contact ID"
    )

    stripe_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, comment="Stripe customer ID (cus_...)"
    )


class GatewayLog(Base):
    """
    Masked record of a request to or response from Stripe.

    Each remote call writes two rows: direction "input" for the request and
    "output" for the response.
    """

    __tablename__ = "gateway_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    url: Mapped[str] = mapped_column(String(255), nullable=False)

    direction: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="input or output"
    )

    data: Mapped[str] = mapped_column(Text, nullable=False, comment="Masked JSON payload")

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
