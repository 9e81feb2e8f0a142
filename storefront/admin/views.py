from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from storefront.utils.security import require_admin
from storefront.admin import service as admin_service
# module storefront.admin.views

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


class OrderStatusIn(BaseModel):
    status: str


@router.get("/orders")
def admin_orders(limit: int = Query(default=100, ge=1, le=500), user: dict = Depends(require_admin)):
    return {"orders": admin_service.list_orders(limit=limit)}

@router.post("/orders/{order_id}/status")
def admin_update_order_status(order_id: str, payload: OrderStatusIn, user: dict = Depends(require_admin)):
    order = admin_service.update_order_status(order_id, payload.status)
    return {"status": "ok", "order": order}
