# Overview: Service-layer operations for count adjustments and inter-store transfers.

"""
Inventory Adjustment & Transfer

Invariants (authoritative):
- adjust_batch and transfer_stock are all-or-nothing per call.
- ADJUST carries the signed delta (counted - on hand); zero deltas write nothing.
- Every transfer writes a TRANSFER_OUT at the source and a TRANSFER_IN at the
  destination with the same product, quantity and reference, or neither.
"""

from __future__ import annotations

import uuid

from flask import current_app

from ..errors import ValidationError
from ..models.stock import MOVEMENT_ADJUST, MOVEMENT_TRANSFER_IN, MOVEMENT_TRANSFER_OUT
from .concurrency import run_in_transaction
from .ledger_service import append_movement, claim_balance, ensure_references
from .stock_service import current_stock
from stockledger.time_utils import utc_millis
from ..validation import (
    coerce_id,
    coerce_non_negative,
    coerce_positive,
    optional_text,
    require_list,
)


def transfer_reference() -> str:
    """TRANS-{unix millis}-{random suffix}; unique even within one millisecond."""
    return f"TRANS-{utc_millis()}-{uuid.uuid4().hex[:8]}"


def _parse_adjustments(adjustments) -> list[dict]:
    adjustments = require_list(adjustments, "adjustments", allow_empty=True)
    parsed = []
    for index, entry in enumerate(adjustments):
        parsed.append({
            "product_id": coerce_id(entry.get("product_id"), f"adjustments[{index}].product_id"),
            "store_id": coerce_id(entry.get("store_id"), f"adjustments[{index}].store_id"),
            "counted_qty": coerce_non_negative(
                entry.get("counted_qty"), f"adjustments[{index}].counted_qty"
            ),
            "inventory_reference": optional_text(entry, "inventory_reference"),
        })
    return parsed


def adjust_batch(adjustments) -> list[dict]:
    """
    Reconcile physical counts with the ledger.

    Returns one result per entry: {product_id, store_id, previous, counted,
    delta, movement_id}; movement_id is None when the count already matched.
    """
    parsed = _parse_adjustments(adjustments)

    def _op():
        results = []
        for entry in parsed:
            ensure_references(entry["product_id"], entry["store_id"])
            # Lock the pair before reading the live sum.
            claim_balance(entry["product_id"], entry["store_id"])
            previous = current_stock(entry["product_id"], entry["store_id"])
            delta = entry["counted_qty"] - previous

            movement_id = None
            if delta != 0:
                movement = append_movement(
                    product_id=entry["product_id"],
                    store_id=entry["store_id"],
                    movement_type=MOVEMENT_ADJUST,
                    quantity=delta,
                    reference=entry["inventory_reference"],
                    note=f"Count {entry['counted_qty']:g} (was {previous:g})",
                )
                movement_id = movement.id

            results.append({
                "product_id": entry["product_id"],
                "store_id": entry["store_id"],
                "previous": previous,
                "counted": entry["counted_qty"],
                "delta": delta,
                "movement_id": movement_id,
            })
        return results

    results = run_in_transaction(_op)
    current_app.logger.info(
        "Adjustment batch applied: %d entr(ies), %d movement(s)",
        len(results), sum(1 for r in results if r["movement_id"] is not None),
    )
    return results


def _parse_transfers(transfers) -> list[dict]:
    transfers = require_list(transfers, "transfers")
    parsed = []
    for index, entry in enumerate(transfers):
        from_store_id = coerce_id(entry.get("from_store_id"), f"transfers[{index}].from_store_id")
        to_store_id = coerce_id(entry.get("to_store_id"), f"transfers[{index}].to_store_id")
        if from_store_id == to_store_id:
            raise ValidationError(
                f"transfers[{index}]: source and destination stores must differ",
                details={"from_store_id": from_store_id, "to_store_id": to_store_id},
            )
        parsed.append({
            "product_id": coerce_id(entry.get("product_id"), f"transfers[{index}].product_id"),
            "from_store_id": from_store_id,
            "to_store_id": to_store_id,
            "quantity": coerce_positive(entry.get("quantity"), f"transfers[{index}].quantity"),
        })
    return parsed


def transfer_stock(transfers) -> list[dict]:
    """
    Move stock between stores.

    Every entry is validated before anything is written; the source balance
    is checked by the TRANSFER_OUT append under its lock.
    """
    parsed = _parse_transfers(transfers)

    def _op():
        results = []
        for entry in parsed:
            reference = transfer_reference()
            out_movement = append_movement(
                product_id=entry["product_id"],
                store_id=entry["from_store_id"],
                movement_type=MOVEMENT_TRANSFER_OUT,
                quantity=entry["quantity"],
                reference=reference,
            )
            in_movement = append_movement(
                product_id=entry["product_id"],
                store_id=entry["to_store_id"],
                movement_type=MOVEMENT_TRANSFER_IN,
                quantity=entry["quantity"],
                reference=reference,
            )
            results.append({
                "reference": reference,
                "product_id": entry["product_id"],
                "from_store_id": entry["from_store_id"],
                "to_store_id": entry["to_store_id"],
                "quantity": entry["quantity"],
                "movement_ids": [out_movement.id, in_movement.id],
            })
        return results

    results = run_in_transaction(_op)
    current_app.logger.info(
        "Transferred %d entr(ies): %s",
        len(results), ", ".join(r["reference"] for r in results),
    )
    return results
