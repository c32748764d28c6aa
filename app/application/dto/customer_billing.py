from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GetCustomerBillingInput:
    customer_email: str | None
