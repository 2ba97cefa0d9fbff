"""
Schemas for client packages and credit balances.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PackageAssign(BaseModel):
    package_id: int
    notes: Optional[str] = None


class ClientPackageResponse(BaseModel):
    id: int
    client_id: int
    package_id: int
    sessions_total: int
    sessions_used: int
    sessions_remaining: int
    expires_at: Optional[datetime]
    status: str

    model_config = {"from_attributes": True}


class CreditSummary(BaseModel):
    client_id: int
    total_credits: int
    active_packages: int
    nearest_expiry: Optional[datetime]
    credit_status: str  # none, low, medium, good
