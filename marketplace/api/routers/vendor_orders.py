# marketplace/api/routers/vendor_orders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from marketplace.data.database import get_db
from marketplace.domain.errors import DomainError
from marketplace.domain.schemas import (
    TrackingAddedOut,
    TrackingIn,
    TrackingOut,
    VendorOrderDetailOut,
    VendorOrdersOut,
    VendorStatusIn,
)
from marketplace.services.vendor_order_service import VendorOrderService

router = APIRouter(prefix="/vendor/orders", tags=["vendor"])


def get_service(db: Session):
    return VendorOrderService(db)


@router.get("", response_model=VendorOrdersOut)
def list_orders(
    user_id: int = Query(...),
    status: str | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1),
    per_page: int = Query(20, alias="perPage"),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.list_orders(user_id, status=status, search=search, page=page, per_page=per_page)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{item_id}", response_model=VendorOrderDetailOut)
def get_order(
    item_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_order(user_id, item_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch("/{item_id}", response_model=VendorOrderDetailOut)
def update_status(
    item_id: int,
    payload: VendorStatusIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    """
    Zmiana statusu pozycji przez vendora, tylko dozwolone przejscia.
    """
    svc = get_service(db)
    try:
        return svc.update_status(user_id, item_id, payload.status)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{item_id}/tracking", response_model=TrackingAddedOut, status_code=201)
def add_tracking(
    item_id: int,
    payload: TrackingIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.add_tracking(
            user_id,
            item_id,
            carrier=payload.carrier,
            tracking_number=payload.tracking_number,
            tracking_url=payload.tracking_url,
            status=payload.status,
            status_details=payload.status_details,
            estimated_delivery=payload.estimated_delivery,
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{item_id}/tracking", response_model=list[TrackingOut])
def get_tracking(
    item_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_tracking(user_id, item_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
