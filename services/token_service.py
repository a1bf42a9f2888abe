"""
Zoho token persistence.

The zoho_tokens table holds one row per organization with the current
access token and its expiry, so a restarted process reuses a live token
instead of refreshing.
"""

from datetime import datetime
from typing import Optional
import structlog

from integrations.zoho import ZohoToken
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class ZohoTokenService:
    """Token store backed by Supabase."""

    def __init__(self, db, org_id: str):
        self.db = db
        self.org_id = org_id
        self.table = "zoho_tokens"

    def load(self) -> Optional[ZohoToken]:
        try:
            result = (
                self.db.table(self.table)
                .select("access_token, expires_at")
                .eq("org_id", self.org_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise DatabaseError("select", str(e), details={"table": self.table})

        if not result.data:
            return None

        row = result.data[0]
        if not row.get("access_token") or not row.get("expires_at"):
            return None

        expires_at = row["expires_at"]
        if isinstance(expires_at, str):
            expires_at = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))

        return ZohoToken(access_token=row["access_token"], expires_at=expires_at)

    def save(self, token: ZohoToken) -> None:
        record = {
            "org_id": self.org_id,
            "access_token": token.access_token,
            "expires_at": token.expires_at.isoformat(),
        }

        try:
            self.db.table(self.table).upsert(record, on_conflict="org_id").execute()
        except Exception as e:
            raise DatabaseError("upsert", str(e), details={"table": self.table})

        logger.debug("zoho_token_saved", org_id=self.org_id)
