"""Repository layer for gateway database operations.

The mapping table is a simple keyed store: each write runs in a savepoint so a
uniqueness violation surfaces immediately without breaking the caller's
transaction, which the caller still owns.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from stripe_plus_gateway.infrastructure.models import CustomerMapping, GatewayLog

logger = structlog.get_logger(__name__)


class CustomerMappingRepository:
    """Repository for contact to Stripe customer mappings."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def get_by_contact(self, contact_id: int) -> Optional[str]:
        """Look up the Stripe customer ID for a contact.

        Args:
            contact_id: Local contact ID

        Returns:
            Stripe customer ID if mapped, None otherwise
        """
        mapping = (
            self.session.query(CustomerMapping)
            .filter(CustomerMapping.contact_id == int(contact_id))
            .first()
        )

        if not mapping:
            logger.debug("customer_mapping_not_found", contact_id=contact_id)
            return None

        return mapping.stripe_id

    def create(self, contact_id: int, stripe_id: str) -> None:
        """Persist a new mapping.

        Raises:
            IntegrityError: If the contact or Stripe customer is already mapped
        """
        with self.session.begin_nested():
            self.session.add(CustomerMapping(contact_id=int(contact_id), stripe_id=stripe_id))

        logger.info("customer_mapping_created", contact_id=contact_id, stripe_id=stripe_id)

    def delete_by_contact(self, contact_id: int) -> int:
        """Delete the mapping for a contact.

        Returns:
            Number of rows removed (0 or 1)
        """
        with self.session.begin_nested():
            deleted = (
                self.session.query(CustomerMapping)
                .filter(CustomerMapping.contact_id == int(contact_id))
                .delete()
            )

        logger.info("customer_mapping_deleted", contact_id=contact_id, rows=deleted)
        return deleted


class GatewayLogRepository:
    """Insert-only repository for masked request/response logs."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, url: str, direction: str, data: str, success: bool) -> None:
        self.session.add(
            GatewayLog(
                url=url,
                direction=direction,
                data=data,
                success=success,
                created_at=datetime.now(timezone.utc),
            )
        )
        self.session.flush()
