from datetime import date, timedelta
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from medsupply.models.inventory import Inventory, MovementType, StockMovement, StockStatus
from medsupply.models.products import Product
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed
from medsupply.utils.money import from_paise

logger = logging.getLogger("inventory")


def get_inventory(db: Session, inventory_id: int) -> Optional[Inventory]:
    return (
        db.query(Inventory)
        .options(selectinload(Inventory.product))
        .filter(Inventory.id == inventory_id)
        .first()
    )


def query_inventory(db: Session, product_id: Optional[int] = None, warehouse_id: Optional[int] = None,
                    stock_status=None, search: Optional[str] = None, in_stock_only: bool = False):
    query = db.query(Inventory).options(selectinload(Inventory.product))
    if product_id:
        query = query.filter(Inventory.product_id == product_id)
    if warehouse_id:
        query = query.filter(Inventory.warehouse_id == warehouse_id)
    if stock_status:
        query = query.filter(Inventory.stock_status == stock_status)
    if in_stock_only:
        query = query.filter(Inventory.current_stock > 0)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.join(Product, Inventory.product_id == Product.id).filter(or_(
            Inventory.batch_no.ilike(pattern),
            Product.name.ilike(pattern),
            Product.code.ilike(pattern),
        ))
    return query.order_by(Inventory.exp_date.asc(), Inventory.id.asc())


def _movement(db: Session, inv: Inventory, movement_type: MovementType, quantity: int, user: UserContext,
              reason: Optional[str] = None, remarks: Optional[str] = None, reference_type: Optional[str] = None,
              reference_id: Optional[int] = None, reference_number: Optional[str] = None) -> StockMovement:
    movement = StockMovement(
        movement_type=movement_type,
        quantity=quantity,
        balance_after=inv.current_stock,
        reason=reason,
        remarks=remarks,
        reference_type=reference_type,
        reference_id=reference_id,
        reference_number=reference_number,
        movement_by=user.username,
    )
    inv.movements.append(movement)
    db.flush()
    return movement


def _find_lot(db: Session, product_id: int, warehouse_id: int, batch_no: Optional[str], location: dict):
    query = db.query(Inventory).filter(
        Inventory.product_id == product_id,
        Inventory.warehouse_id == warehouse_id,
        Inventory.batch_no == batch_no if batch_no is not None else Inventory.batch_no.is_(None),
    )
    for key in ("zone", "rack", "shelf", "bin"):
        column = getattr(Inventory, key)
        value = location.get(key)
        query = query.filter(column == value if value is not None else column.is_(None))
    return query.first()


def receive_stock(db: Session, user: UserContext, product_id: int, warehouse_id: int, quantity: int,
                  batch_no: Optional[str] = None, mfg_date: Optional[date] = None, exp_date: Optional[date] = None,
                  location: Optional[dict] = None, unit_cost_paise: int = 0, reference_type: Optional[str] = None,
                  reference_id: Optional[int] = None, reference_number: Optional[str] = None,
                  links: Optional[dict] = None) -> Inventory:
    """Put approved stock on the shelf, merging into an existing lot at the same location."""
    location = location or {}
    inv = _find_lot(db, product_id, warehouse_id, batch_no, location)
    if inv is None:
        inv = Inventory(
            product_id=product_id,
            warehouse_id=warehouse_id,
            batch_no=batch_no,
            mfg_date=mfg_date,
            exp_date=exp_date,
            current_stock=0,
            reserved_stock=0,
            stock_status=StockStatus.ACTIVE,
            unit_cost_paise=unit_cost_paise,
            created_by=user.username,
            **{key: location.get(key) for key in ("zone", "rack", "shelf", "bin")},
            **(links or {}),
        )
        db.add(inv)
    inv.current_stock = (inv.current_stock or 0) + quantity
    inv.refresh_available()
    _movement(db, inv, MovementType.INWARD, quantity, user, reason="warehouse_approval",
              reference_type=reference_type, reference_id=reference_id, reference_number=reference_number)
    return inv


def adjust_stock(db: Session, inv: Inventory, quantity: int, reason: str, user: UserContext,
                 remarks: Optional[str] = None, movement_type: Optional[MovementType] = None) -> Inventory:
    """Apply a signed change to current stock; stock never drops below what is reserved."""
    if quantity == 0:
        raise ValidationFailed([FieldError("quantity", "Quantity must not be zero")])
    new_stock = (inv.current_stock or 0) + quantity
    if new_stock < 0:
        raise ValidationFailed([FieldError("quantity", f"Insufficient stock: {inv.current_stock} available")])
    if new_stock < (inv.reserved_stock or 0):
        raise ValidationFailed([FieldError("quantity", f"Stock cannot fall below reserved quantity {inv.reserved_stock}")])
    inv.current_stock = new_stock
    inv.refresh_available()
    inv.updated_by = user.username
    _movement(db, inv, movement_type or MovementType.ADJUSTMENT, quantity, user, reason=reason, remarks=remarks)
    logger.info(f"Inventory {inv.id} adjusted by {quantity} ({reason}) by user {user.username}")
    return inv


def reserve_stock(db: Session, inv: Inventory, quantity: int, user: UserContext,
                  reference_number: Optional[str] = None) -> Inventory:
    if quantity <= 0:
        raise ValidationFailed([FieldError("quantity", "Quantity must be greater than 0")])
    if StockStatus(inv.stock_status) != StockStatus.ACTIVE:
        raise ValidationFailed([FieldError("stock_status", f"Cannot reserve stock with status {inv.stock_status.value}")])
    if quantity > inv.available_stock:
        raise ValidationFailed([FieldError("quantity", f"Only {inv.available_stock} units available")])
    inv.reserved_stock = (inv.reserved_stock or 0) + quantity
    inv.refresh_available()
    inv.updated_by = user.username
    db.flush()
    logger.info(f"Inventory {inv.id}: reserved {quantity} ({reference_number or '-'}) by user {user.username}")
    return inv


def release_stock(db: Session, inv: Inventory, quantity: int, user: UserContext) -> Inventory:
    if quantity <= 0:
        raise ValidationFailed([FieldError("quantity", "Quantity must be greater than 0")])
    if quantity > (inv.reserved_stock or 0):
        raise ValidationFailed([FieldError("quantity", f"Only {inv.reserved_stock} units reserved")])
    inv.reserved_stock -= quantity
    inv.refresh_available()
    inv.updated_by = user.username
    db.flush()
    logger.info(f"Inventory {inv.id}: released {quantity} by user {user.username}")
    return inv


def transfer_stock(db: Session, inv: Inventory, quantity: int, warehouse_id: int, location: dict,
                   user: UserContext, remarks: Optional[str] = None) -> Inventory:
    """Move unreserved units to another warehouse or location; returns the destination lot."""
    if quantity <= 0:
        raise ValidationFailed([FieldError("quantity", "Quantity must be greater than 0")])
    if quantity > inv.available_stock:
        raise ValidationFailed([FieldError("quantity", f"Only {inv.available_stock} units available")])
    destination = _find_lot(db, inv.product_id, warehouse_id, inv.batch_no, location)
    if destination is not None and destination.id == inv.id:
        raise ValidationFailed([FieldError("warehouse_id", "Destination is the same as the source")])

    if destination is None:
        destination = Inventory(
            product_id=inv.product_id,
            warehouse_id=warehouse_id,
            batch_no=inv.batch_no,
            mfg_date=inv.mfg_date,
            exp_date=inv.exp_date,
            current_stock=0,
            reserved_stock=0,
            minimum_stock=inv.minimum_stock,
            stock_status=inv.stock_status,
            unit_cost_paise=inv.unit_cost_paise,
            purchase_order_id=inv.purchase_order_id,
            quality_control_id=inv.quality_control_id,
            warehouse_approval_id=inv.warehouse_approval_id,
            created_by=user.username,
            **{key: location.get(key) for key in ("zone", "rack", "shelf", "bin")},
        )
        db.add(destination)
        db.flush()

    inv.current_stock -= quantity
    inv.refresh_available()
    _movement(db, inv, MovementType.TRANSFER, -quantity, user, reason="transfer_out", remarks=remarks,
              reference_type="inventory", reference_id=destination.id)
    destination.current_stock += quantity
    destination.refresh_available()
    _movement(db, destination, MovementType.TRANSFER, quantity, user, reason="transfer_in", remarks=remarks,
              reference_type="inventory", reference_id=inv.id)
    logger.info(f"Inventory {inv.id}: transferred {quantity} to lot {destination.id} by user {user.username}")
    return destination


def get_movements(db: Session, inventory_id: int):
    return (
        db.query(StockMovement)
        .filter(StockMovement.inventory_id == inventory_id)
        .order_by(StockMovement.movement_date.desc(), StockMovement.id.desc())
    )


def get_alerts(db: Session, near_expiry_days: int, today: Optional[date] = None) -> dict:
    today = today or date.today()
    horizon = today + timedelta(days=near_expiry_days)
    in_stock = db.query(Inventory).options(selectinload(Inventory.product)).filter(Inventory.current_stock > 0)
    return {
        "low_stock": in_stock.filter(
            Inventory.minimum_stock > 0,
            Inventory.current_stock <= Inventory.minimum_stock,
        ).all(),
        "near_expiry": in_stock.filter(
            Inventory.exp_date.isnot(None),
            Inventory.exp_date > today,
            Inventory.exp_date <= horizon,
        ).all(),
        "expired": in_stock.filter(
            Inventory.exp_date.isnot(None),
            Inventory.exp_date <= today,
        ).all(),
    }


def refresh_expiry_statuses(db: Session, near_expiry_days: int, today: Optional[date] = None) -> List[Inventory]:
    """Flag expired and near-expiry lots; damaged, quarantined and blocked lots are left alone."""
    today = today or date.today()
    horizon = today + timedelta(days=near_expiry_days)
    changed = []
    lots = db.query(Inventory).filter(
        Inventory.exp_date.isnot(None),
        Inventory.stock_status.in_([StockStatus.ACTIVE, StockStatus.NEAR_EXPIRY]),
    ).all()
    for inv in lots:
        if inv.exp_date <= today:
            status = StockStatus.EXPIRED
        elif inv.exp_date <= horizon:
            status = StockStatus.NEAR_EXPIRY
        else:
            status = StockStatus.ACTIVE
        if inv.stock_status != status:
            inv.stock_status = status
            inv.updated_by = "system"
            changed.append(inv)
    db.flush()
    return changed


USABLE_STATUSES = (StockStatus.ACTIVE, StockStatus.NEAR_EXPIRY)


def utilize_stock(db: Session, inv: Inventory, quantity: int, user: UserContext, hospital_id: Optional[int] = None,
                  doctor_id: Optional[int] = None, patient_name: Optional[str] = None,
                  case_number: Optional[str] = None, reason: Optional[str] = None,
                  remarks: Optional[str] = None) -> StockMovement:
    """Record stock consumed at a hospital as an outward movement; reserved units are not touched."""
    if quantity <= 0:
        raise ValidationFailed([FieldError("quantity", "Quantity must be greater than 0")])
    if StockStatus(inv.stock_status) not in USABLE_STATUSES:
        raise ValidationFailed([FieldError("stock_status", f"Cannot utilize stock with status {inv.stock_status.value}")])
    if quantity > inv.available_stock:
        raise ValidationFailed([FieldError("quantity", f"Insufficient stock: {inv.available_stock} available")])
    inv.current_stock -= quantity
    inv.refresh_available()
    inv.updated_by = user.username
    movement = _movement(db, inv, MovementType.OUTWARD, -quantity, user, reason=reason or "patient_utilization",
                         remarks=remarks, reference_type="hospital" if hospital_id else None,
                         reference_id=hospital_id, reference_number=case_number)
    movement.hospital_id = hospital_id
    movement.doctor_id = doctor_id
    movement.patient_name = patient_name
    movement.case_number = case_number
    db.flush()
    logger.info(f"Inventory {inv.id}: {quantity} utilized (case {case_number or '-'}) by user {user.username}")
    return movement


def _stocked_lots(db: Session, warehouse_id: Optional[int] = None) -> List[Inventory]:
    query = db.query(Inventory).options(
        joinedload(Inventory.product).joinedload(Product.category),
        joinedload(Inventory.warehouse),
    ).filter(Inventory.current_stock > 0)
    if warehouse_id:
        query = query.filter(Inventory.warehouse_id == warehouse_id)
    return query.order_by(Inventory.id).all()


def _bucket(buckets: dict, key, **labels) -> dict:
    if key not in buckets:
        buckets[key] = {**labels, "lots": 0, "stock": 0, "value_paise": 0}
    return buckets[key]


def _add(bucket: dict, inv: Inventory) -> None:
    bucket["lots"] += 1
    bucket["stock"] += inv.current_stock
    bucket["value_paise"] += inv.total_value_paise


def _rupees(rows):
    for row in rows:
        for key in [k for k in row if k.endswith("_paise")]:
            row[key[:-len("_paise")]] = from_paise(row.pop(key))
    return rows


def inventory_statistics(db: Session, near_expiry_days: int, warehouse_id: Optional[int] = None,
                         today: Optional[date] = None, top: int = 10) -> dict:
    """Stock on hand summarised by status, product and warehouse, with alert counts."""
    today = today or date.today()
    horizon = today + timedelta(days=near_expiry_days)
    overview = {"lots": 0, "stock": 0, "value_paise": 0}
    by_status, by_product, by_warehouse = {}, {}, {}
    alerts = {"low_stock": 0, "near_expiry": 0, "expired": 0}
    for inv in _stocked_lots(db, warehouse_id):
        _add(overview, inv)
        _add(_bucket(by_status, inv.stock_status, status=StockStatus(inv.stock_status).value), inv)
        _add(_bucket(by_product, inv.product_id, product_id=inv.product_id, product_name=inv.product_name), inv)
        _add(_bucket(by_warehouse, inv.warehouse_id, warehouse_id=inv.warehouse_id,
                     warehouse_name=inv.warehouse.name if inv.warehouse else None), inv)
        if inv.minimum_stock and inv.current_stock <= inv.minimum_stock:
            alerts["low_stock"] += 1
        if inv.exp_date is not None and inv.exp_date <= today:
            alerts["expired"] += 1
        elif inv.exp_date is not None and inv.exp_date <= horizon:
            alerts["near_expiry"] += 1

    top_products = sorted(by_product.values(), key=lambda row: (-row["value_paise"], row["product_id"]))[:top]
    return {
        "overview": _rupees([overview])[0],
        "by_status": _rupees(sorted(by_status.values(), key=lambda row: row["status"])),
        "alerts": alerts,
        "top_products": _rupees(top_products),
        "by_warehouse": _rupees(sorted(by_warehouse.values(), key=lambda row: row["warehouse_id"])),
    }


def inventory_valuation(db: Session, warehouse_id: Optional[int] = None) -> dict:
    """Value of stock on hand at lot cost, split into available and reserved, per warehouse and category."""
    totals = {"lots": 0, "stock": 0, "value_paise": 0, "available_value_paise": 0, "reserved_value_paise": 0}
    by_warehouse, by_category = {}, {}
    for inv in _stocked_lots(db, warehouse_id):
        cost = inv.unit_cost_paise or 0
        warehouse = by_warehouse.setdefault(inv.warehouse_id, {
            "warehouse_id": inv.warehouse_id,
            "warehouse_name": inv.warehouse.name if inv.warehouse else None,
            "lots": 0, "stock": 0, "value_paise": 0, "available_value_paise": 0, "reserved_value_paise": 0,
        })
        for bucket in (totals, warehouse):
            _add(bucket, inv)
            bucket["available_value_paise"] += (inv.available_stock or 0) * cost
            bucket["reserved_value_paise"] += (inv.reserved_stock or 0) * cost
        category = inv.product.category if inv.product else None
        _add(_bucket(by_category, category.id if category else None,
                     category_id=category.id if category else None,
                     category_name=category.name if category else "Uncategorized"), inv)
    return {
        "totals": _rupees([totals])[0],
        "by_warehouse": _rupees(sorted(by_warehouse.values(), key=lambda row: row["warehouse_id"])),
        "by_category": _rupees(sorted(by_category.values(), key=lambda row: row["category_name"])),
    }
