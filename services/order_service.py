"""
Order and customer persistence.
"""

from typing import Optional
import structlog

from models.product import OrderFields
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class OrderService:
    """Orders keyed by Zoho sales order id; customers keyed by email."""

    def __init__(self, db):
        self.db = db

    def ensure_customer(
        self,
        email: Optional[str],
        name: Optional[str],
        zoho_customer_id: Optional[str]
    ) -> str:
        """
        Return the customer id for an order, creating the customer if needed.

        Orders without an email get a placeholder address derived from the
        Zoho customer id so repeat syncs resolve to the same row.
        """
        email = (email or "").strip().lower() or f"customer-{zoho_customer_id or 'unknown'}@zoho.local"

        try:
            result = self.db.table("customers").select("id").eq("email", email).limit(1).execute()
            if result.data:
                return result.data[0]["id"]

            created = self.db.table("customers").insert({
                "email": email,
                "full_name": name,
                "zoho_customer_id": zoho_customer_id,
                "age_verification_status": "unverified",
            }).execute()

        except Exception as e:
            logger.error("ensure_customer_failed", email=email, error=str(e))
            raise DatabaseError("upsert", str(e), details={"table": "customers"})

        logger.info("customer_created", email=email)
        return created.data[0]["id"]

    def upsert_order(self, fields: OrderFields) -> bool:
        """
        Insert or update an order.

        Returns:
            True if the order was created
        """
        customer_id = self.ensure_customer(
            fields.customer_email,
            fields.customer_name,
            fields.zoho_customer_id
        )
        record = fields.to_record(customer_id)

        try:
            existing = (
                self.db.table("orders")
                .select("id")
                .eq("zoho_salesorder_id", fields.zoho_salesorder_id)
                .limit(1)
                .execute()
            )

            if existing.data:
                self.db.table("orders").update(record).eq("id", existing.data[0]["id"]).execute()
                return False

            self.db.table("orders").insert(record).execute()
            return True

        except Exception as e:
            logger.error(
                "order_upsert_failed",
                salesorder_id=fields.zoho_salesorder_id,
                error=str(e)
            )
            raise DatabaseError("upsert", str(e), details={"table": "orders"})
