from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from facility.database import get_db
from facility.dependencies import ADMIN_ROLES, get_current_user, require_admin
from facility.events import publish_event
from facility.models import (
    Checkout,
    CheckoutItem,
    Equipment,
    EquipmentCondition,
    LendingStatus,
    LendingTool,
    Room,
    User,
)
from facility.persistence import commit_or_conflict, ensure_unique, get_or_404
from facility.rate_limit import limiter
from facility.reconcile import latest_returns, parallel_quantities, reconcile
from facility.schemas import (
    CheckoutCreate,
    CheckoutRead,
    EquipmentCreate,
    EquipmentRead,
    EquipmentSummary,
    EquipmentUpdate,
    LendingCreate,
    LendingRead,
    MissingRecordRead,
)
from facility.service import create_service
from facility.snapshots import borrow_sources, return_records

app = create_service("Equipment Service", "equipment")


def _missing_for(db: Session, equipment_id: int):
    sources = borrow_sources(db, equipment_id)
    lending_ids = [source.record_id for source in sources if source.tag == "lending"]
    return reconcile(equipment_id, sources, return_records(db, lending_ids))


@app.get("/equipment", response_model=List[EquipmentRead])
def list_equipment(
    category: Optional[str] = None,
    room_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[Equipment]:
    query = db.query(Equipment)
    if category:
        query = query.filter(Equipment.category == category)
    if room_id is not None:
        query = query.filter(Equipment.room_id == room_id)
    return query.order_by(Equipment.name).all()


@app.post("/equipment", response_model=EquipmentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("15/minute")
def add_equipment(
    request: Request,
    equipment_in: EquipmentCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Equipment:
    if equipment_in.room_id is not None:
        get_or_404(db, Room, equipment_in.room_id, "Room")
    ensure_unique(db, Equipment, [("code", equipment_in.code, "Equipment code already exists")])
    equipment = Equipment(**equipment_in.model_dump())
    db.add(equipment)
    commit_or_conflict(db, "Equipment code already exists")
    db.refresh(equipment)
    return equipment


@app.get("/equipment/{equipment_id}", response_model=EquipmentRead)
def get_equipment(equipment_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> Equipment:
    return get_or_404(db, Equipment, equipment_id, "Equipment")


@app.put("/equipment/{equipment_id}", response_model=EquipmentRead)
@limiter.limit("15/minute")
def update_equipment(
    request: Request,
    equipment_id: int,
    equipment_update: EquipmentUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Equipment:
    equipment = get_or_404(db, Equipment, equipment_id, "Equipment")
    update_data = equipment_update.model_dump(exclude_unset=True)
    if update_data.get("room_id") is not None:
        get_or_404(db, Room, update_data["room_id"], "Room")
    ensure_unique(
        db, Equipment, [("code", update_data.get("code"), "Equipment code already exists")], exclude_id=equipment_id
    )
    for key, value in update_data.items():
        setattr(equipment, key, value)
    commit_or_conflict(db, "Equipment code already exists")
    db.refresh(equipment)
    return equipment


@app.delete("/equipment/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_equipment(
    request: Request,
    equipment_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    db.delete(get_or_404(db, Equipment, equipment_id, "Equipment"))
    db.commit()


@app.get("/equipment/{equipment_id}/missing", response_model=List[MissingRecordRead])
@limiter.limit("30/minute")
def missing_equipment(
    request: Request,
    equipment_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Borrow events of this equipment that still have units outstanding."""

    get_or_404(db, Equipment, equipment_id, "Equipment")
    return [MissingRecordRead.model_validate(record) for record in _missing_for(db, equipment_id)]


@app.get("/equipment/{equipment_id}/summary", response_model=EquipmentSummary)
@limiter.limit("30/minute")
def equipment_summary(
    request: Request,
    equipment_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EquipmentSummary:
    equipment = get_or_404(db, Equipment, equipment_id, "Equipment")
    records = _missing_for(db, equipment_id)
    return EquipmentSummary(
        equipment_id=equipment.id,
        quantity=equipment.quantity,
        unit=equipment.unit,
        outstanding_events=len(records),
        borrowed_quantity=sum(record.borrowed_quantity for record in records),
        missing_quantity=sum(record.missing_quantity for record in records),
    )


@app.get("/lendings", response_model=List[LendingRead])
@limiter.limit("30/minute")
def list_lendings(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[LendingTool]:
    query = db.query(LendingTool)
    if current_user.role not in ADMIN_ROLES:
        query = query.filter(LendingTool.user_id == current_user.id)
    return query.order_by(LendingTool.borrowed_at.desc()).all()


@app.post("/lendings", response_model=LendingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_lending(
    request: Request,
    lending_in: LendingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LendingTool:
    borrower_id = lending_in.borrower_id or current_user.id
    if borrower_id != current_user.id:
        if current_user.role not in ADMIN_ROLES:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins may lend on behalf of others")
        get_or_404(db, User, borrower_id, "Borrower")

    requested: Dict[int, int] = {}
    for item in lending_in.items:
        requested[item.equipment_id] = requested.get(item.equipment_id, 0) + item.quantity

    for equipment_id, quantity in requested.items():
        equipment = get_or_404(db, Equipment, equipment_id, f"Equipment {equipment_id}")
        if not equipment.is_available or equipment.condition != EquipmentCondition.GOOD:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{equipment.name} is not available")
        if quantity > equipment.quantity:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Only {equipment.quantity} {equipment.unit} of {equipment.name} left",
            )
        equipment.quantity -= quantity

    lending = LendingTool(
        user_id=borrower_id,
        equipment_ids=list(requested.keys()),
        quantities=list(requested.values()),
        status=LendingStatus.BORROW,
    )
    db.add(lending)
    db.commit()
    db.refresh(lending)

    publish_event(
        "lending_created",
        {
            "lending_id": lending.id,
            "user_id": lending.user_id,
            "equipment_ids": lending.equipment_ids,
            "quantities": lending.quantities,
        },
    )
    return lending


@app.post("/checkouts", response_model=CheckoutRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_checkout(
    request: Request,
    checkout_in: CheckoutCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Checkout:
    """Record what has come back for a lending so far.

    Each checkout holds the cumulative returned quantity per item; only the
    newest one counts when reconciling, so items not listed here carry over
    from the previous checkout.
    """

    lending = get_or_404(db, LendingTool, checkout_in.lending_id, "Lending")
    borrowed = parallel_quantities(lending.equipment_ids, lending.quantities)
    previous = latest_returns(return_records(db, [lending.id])).get(lending.id)
    returned: Dict[int, int] = dict(previous.returned) if previous else {}

    for item in checkout_in.items:
        if item.equipment_id not in borrowed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Equipment {item.equipment_id} is not part of lending {lending.id}",
            )
        if item.returned_quantity > borrowed[item.equipment_id]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot return more than the {borrowed[item.equipment_id]} borrowed",
            )
        if item.returned_quantity < returned.get(item.equipment_id, 0):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Returned quantity cannot decrease between checkouts",
            )

    for item in checkout_in.items:
        delta = item.returned_quantity - returned.get(item.equipment_id, 0)
        if delta:
            equipment = db.get(Equipment, item.equipment_id)
            if equipment is not None:
                equipment.quantity += delta
        returned[item.equipment_id] = item.returned_quantity

    settled = all(returned.get(equipment_id, 0) >= quantity for equipment_id, quantity in borrowed.items())
    checkout = Checkout(
        lending_id=lending.id,
        status="returned" if settled else "partial",
        notes=checkout_in.notes,
        items=[
            CheckoutItem(equipment_id=equipment_id, returned_quantity=quantity)
            for equipment_id, quantity in returned.items()
        ],
    )
    if settled:
        lending.status = LendingStatus.RETURNED
    db.add(checkout)
    db.commit()
    db.refresh(checkout)
    return checkout
