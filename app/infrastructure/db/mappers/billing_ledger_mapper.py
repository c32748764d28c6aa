from __future__ import annotations

import json
from typing import Any, Mapping

from app.application.dto.billing import CatalogProduct, LedgerEntry


def map_row_to_catalog_product(row: Mapping[str, Any]) -> CatalogProduct:
    return CatalogProduct(
        title=row.get("title"),
        type=row.get("type"),
    )


def map_ledger_entry_to_params(entry: LedgerEntry) -> dict[str, Any]:
    return {
        "event_type": entry.event_type,
        "event_at": entry.event_at,
        "stripe_event_id": entry.stripe_event_id,
        "stripe_session_id": entry.stripe_session_id,
        "stripe_subscription_id": entry.stripe_subscription_id,
        "stripe_invoice_id": entry.stripe_invoice_id,
        "stripe_customer_id": entry.stripe_customer_id,
        "user_id": entry.user_id,
        "amount": entry.amount,
        "currency": entry.currency,
        "tax_amount": entry.tax_amount,
        "product_id": entry.product_id,
        "product_name": entry.product_name,
        "product_type": entry.product_type,
        "metadata": json.dumps(entry.metadata, default=str),
    }
