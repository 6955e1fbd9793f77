# ==============================================================================
# INVENTORY REPOSITORY
# ==============================================================================
# Stock items, stock status and audited quantity adjustments
# ==============================================================================

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from farm_data.core.exceptions import (
    InvalidParameterError,
    RecordNotFoundError,
    TransactionError,
)
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import OperationKind, QueryRequest
from farm_data.database.repositories.base_repository import BaseRepository, Payload

logger = logging.getLogger(__name__)

STOCK_OPERATIONS = ("add", "subtract", "set")

SORT_FIELDS = frozenset({
    "id",
    "name",
    "sku",
    "category",
    "qty",
    "reorder_threshold",
    "created_at",
    "updated_at",
})

_STOCK_STATUS = """
    CASE WHEN i.qty <= i.reorder_threshold THEN 'critical'
         WHEN i.qty <= i.reorder_threshold * 1.5 THEN 'low'
         ELSE 'normal' END
"""

_ACCESS_JOIN = """
    FROM inventory i
    JOIN farm_members fm ON fm.farm_id = i.farm_id AND fm.user_id = ?
    JOIN farms fa ON fa.id = i.farm_id
"""


class InventoryRepository(BaseRepository):
    """
    Repository for inventory items.

    ``stock_status`` is ``critical`` at or below the reorder threshold,
    ``low`` up to 1.5x the threshold and ``normal`` above.
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "inventory")

    @staticmethod
    def _filters(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        filters = filters or {}
        clauses: List[str] = []
        params: List[Any] = []

        for column in ("farm_id", "category"):
            if filters.get(column) is not None:
                clauses.append(f"i.{column} = ?")
                params.append(filters[column])

        if filters.get("low_stock"):
            clauses.append("i.qty <= i.reorder_threshold")

        if filters.get("search"):
            clauses.append("(i.name LIKE ? OR i.sku LIKE ?)")
            pattern = f"%{filters['search']}%"
            params.extend([pattern, pattern])

        return "".join(f" AND {clause}" for clause in clauses), params

    async def find_by_user_access(
        self,
        user_id: Any,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort_by: Optional[str] = None,
        sort_direction: Optional[str] = None,
        limit: Any = None,
        page: Any = 1,
    ) -> List[Dict[str, Any]]:
        """
        Items on the user's farms, by name unless ``sort_by`` is given.

        Filters: ``farm_id``, ``category``, ``low_stock`` (at or below
        the reorder threshold) and ``search`` (name or SKU substring).
        """
        where, params = self._filters(filters)
        if sort_by in SORT_FIELDS:
            order = f"i.{sort_by} {self._direction(sort_direction)}"
        else:
            order = "i.name ASC"
        size, offset = self._page(limit, page)

        query = f"""
            SELECT i.*,
                   fa.name AS farm_name,
                   {_STOCK_STATUS} AS stock_status,
                   (SELECT COUNT(*) FROM inventory_transactions it
                     WHERE it.inventory_id = i.id) AS transaction_count
            {_ACCESS_JOIN}
            WHERE 1 = 1{where}
            ORDER BY {order}
            LIMIT ? OFFSET ?
        """
        return await self._fetch_all(
            query, [user_id, *params, size, offset], user_id
        )

    async def count_by_user_access(
        self,
        user_id: Any,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> int:
        where, params = self._filters(filters)
        query = f"SELECT COUNT(*) AS total {_ACCESS_JOIN} WHERE 1 = 1{where}"
        row = await self._fetch_first(query, [user_id, *params], user_id)
        return int(row["total"]) if row else 0

    async def find_with_access(self, item_id: Any, user_id: Any) -> Optional[Dict[str, Any]]:
        query = f"""
            SELECT i.*, fa.name AS farm_name, {_STOCK_STATUS} AS stock_status
            {_ACCESS_JOIN}
            WHERE i.id = ?
            LIMIT 1
        """
        return await self._fetch_first(query, [user_id, item_id], user_id)

    async def create_item(self, data: Payload, user_id: Any) -> Dict[str, Any]:
        """
        Raises:
            RecordNotFoundError: Farm not visible to the user
        """
        payload = self._to_dict(data)
        await self._require_farm_access(payload.get("farm_id"), user_id)
        return await self._crud.create("inventory", payload, actor_id=self._actor(user_id))

    async def adjust_quantity(
        self,
        item_id: Any,
        quantity: float,
        operation: str,
        user_id: Any,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Change an item's stock and record the movement.

        The quantity update and the ``inventory_transactions`` row are
        one batch. The update only applies if the stored quantity is
        still the one read here; the transaction row is inserted only
        when the update changed a row.

        Args:
            quantity: Amount to add or subtract, or the new level for "set"
            operation: "add", "subtract" or "set"
            reason: Stored as the transaction's reference type

        Returns:
            The item after the adjustment

        Raises:
            InvalidParameterError: Unknown operation, bad quantity or
                insufficient stock
            RecordNotFoundError: Item missing or not visible to the user
            TransactionError: The item changed between read and write
        """
        if operation not in STOCK_OPERATIONS:
            raise InvalidParameterError(
                f"Invalid stock operation: {operation}",
                details={"operation": str(operation), "allowed": list(STOCK_OPERATIONS)},
            )
        if (
            isinstance(quantity, bool)
            or not isinstance(quantity, (int, float))
            or not math.isfinite(quantity)
            or quantity < 0
        ):
            raise InvalidParameterError(
                "Quantity must be a non-negative number",
                details={"quantity": str(quantity)},
            )

        item = await self.find_with_access(item_id, user_id)
        if not item:
            raise RecordNotFoundError(
                "Inventory item not found or access denied",
                resource_type="inventory",
                resource_id=item_id,
            )

        current = float(item.get("qty") or 0)
        if operation == "add":
            new_qty = current + quantity
        elif operation == "subtract":
            new_qty = current - quantity
        else:
            new_qty = float(quantity)

        if new_qty < 0:
            raise InvalidParameterError(
                "Insufficient stock",
                details={"available": current, "requested": quantity},
            )

        async with self.unit_of_work(user_id) as uow:
            update_index = uow.add(QueryRequest(
                query="UPDATE inventory SET qty = ? WHERE id = ? AND qty IS ?",
                params=[new_qty, item_id, item.get("qty")],
                operation=OperationKind.RUN,
                table="inventory",
            ))
            uow.add(QueryRequest(
                query=(
                    "INSERT INTO inventory_transactions "
                    "(inventory_id, qty_delta, reason_type, reference_type, created_by) "
                    "SELECT ?, ?, ?, ?, ? WHERE changes() = 1"
                ),
                params=[item_id, new_qty - current, operation, reason, user_id],
                operation=OperationKind.RUN,
                table="inventory_transactions",
            ))

        if uow.result.results[update_index].changes == 0:
            raise TransactionError(
                "Inventory item changed during adjustment",
                details={"inventory_id": str(item_id)},
            )

        logger.debug(
            f"Adjusted inventory {item_id}: {operation} {quantity} "
            f"({current} -> {new_qty})"
        )
        return await self.find_with_access(item_id, user_id)
