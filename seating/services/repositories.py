"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Both backends revalidate the capacity invariant at commit time, so a write
that passed the in-memory check can still come back as
``CapacityExceededError`` when another device got there first.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from firebase_admin import firestore
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from seating.core.config import settings
from seating.core.errors import CapacityExceededError, NotFoundError, ValidationError
from seating.models import Annotation, Category, Event, Guest, Table
from seating.schemas.annotation import AnnotationRecord
from seating.schemas.category import CategoryRecord
from seating.schemas.guest import GuestRecord, RsvpStatus
from seating.schemas.table import TableRecord, TableShape
from seating.services.firebase_client import get_firestore_client
from seating.services.guest_roster import effective_party_size

logger = logging.getLogger(__name__)


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


# -------- record mapping --------

# Older clients stored bare shapes, or none at all
_SHAPE_ALIASES = {
    None: TableShape.REGULAR_SQUARE,
    "": TableShape.REGULAR_SQUARE,
    "square": TableShape.REGULAR_SQUARE,
    "rectangle": TableShape.REGULAR_RECTANGLE,
}


def normalize_shape(raw: Any) -> TableShape:
    if raw in _SHAPE_ALIASES:
        return _SHAPE_ALIASES[raw]
    try:
        return TableShape(raw)
    except ValueError:
        raise ValidationError(f"Unknown table shape: {raw!r}", details={"shape": raw})


def normalize_status(raw: Any) -> RsvpStatus:
    try:
        return RsvpStatus(raw)
    except ValueError:
        logger.warning(f"Unknown RSVP status {raw!r}, treating as pending")
        return RsvpStatus.PENDING


def coerce_party_size(raw: Any) -> Optional[int]:
    """Keep whatever integer was stored; drop values that are not numbers"""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _table_record(table_id: str, data: Dict[str, Any]) -> TableRecord:
    try:
        return TableRecord(
            id=str(table_id),
            number=data.get("number"),
            name=data.get("name"),
            capacity=int(data.get("capacity") or 0),
            shape=normalize_shape(data.get("shape")),
            x=data.get("x"),
            y=data.get("y"),
        )
    except (SchemaValidationError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid table record '{table_id}'", details=str(exc))


def _guest_record(guest_id: str, data: Dict[str, Any]) -> GuestRecord:
    return GuestRecord(
        id=str(guest_id),
        name=data.get("name") or "",
        phone=data.get("phone") or "",
        party_size=coerce_party_size(data.get("party_size")),
        rsvp_status=normalize_status(data.get("rsvp_status")),
        table_id=data.get("table_id") or None,
        checked_in=bool(data.get("checked_in")),
        checked_in_at=data.get("checked_in_at"),
        category_id=data.get("category_id") or None,
    )


def table_from_row(row: Table) -> TableRecord:
    return _table_record(row.id, {
        "number": row.number, "name": row.name, "capacity": row.capacity,
        "shape": row.shape, "x": row.x, "y": row.y,
    })


def guest_from_row(row: Guest) -> GuestRecord:
    return _guest_record(row.id, {
        "name": row.name, "phone": row.phone, "party_size": row.party_size,
        "rsvp_status": row.rsvp_status, "table_id": row.table_id,
        "checked_in": row.checked_in, "checked_in_at": row.checked_in_at,
        "category_id": row.category_id,
    })


def _doc_record(doc, mapper):
    return mapper(doc.id, doc.to_dict() or {})


def _event_ref(event_id: str):
    fs = get_firestore_client()
    if not fs:
        raise RuntimeError("Firestore is not enabled")
    return fs.collection("events").document(event_id)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def exists_sql(db: Session, event_id: str) -> bool:
        return db.query(Event.id).filter(Event.id == event_id).first() is not None

    @staticmethod
    def create_sql(db: Session, name: str, date: datetime, organizer_email: str) -> Event:
        event = Event(name=name, date=date, organizer_email=organizer_email)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    # Firestore shape: document "events/{event_id}" with sub-collections tables, guests, categories
    @staticmethod
    def exists_fs(event_id: str) -> bool:
        return _event_ref(event_id).get().exists

    @staticmethod
    def create_fs(name: str, date_iso: str, organizer_email: str) -> Dict[str, Any]:
        fs = get_firestore_client()
        ref = fs.collection("events").document()
        data = {
            "name": name,
            "date": date_iso,
            "organizer_email": organizer_email,
            "created_at": datetime.utcnow().isoformat(),
        }
        ref.set(data)
        return {"id": ref.id, **data}


# -------- Table repository --------

class TableRepo:
    @staticmethod
    def list_sql(db: Session, event_id: str) -> List[TableRecord]:
        rows = db.query(Table).filter(Table.event_id == event_id).order_by(Table.number, Table.name).all()
        return [table_from_row(row) for row in rows]

    @staticmethod
    def create_sql(db: Session, event_id: str, fields: Dict[str, Any]) -> TableRecord:
        row = Table(event_id=event_id, **fields)
        db.add(row)
        db.commit()
        db.refresh(row)
        return table_from_row(row)

    @staticmethod
    def update_sql(db: Session, event_id: str, table_id: str, fields: Dict[str, Any]) -> TableRecord:
        row = db.query(Table).filter(Table.id == table_id, Table.event_id == event_id).first()
        if not row:
            raise NotFoundError("Table", table_id)
        for key, value in fields.items():
            setattr(row, key, value)
        db.commit()
        db.refresh(row)
        return table_from_row(row)

    @staticmethod
    def delete_sql(db: Session, event_id: str, table_id: str) -> None:
        """Unseat the table's guests, then drop the table, in one transaction"""
        try:
            row = db.query(Table).filter(Table.id == table_id, Table.event_id == event_id).first()
            if not row:
                raise NotFoundError("Table", table_id)
            db.query(Guest).filter(Guest.event_id == event_id, Guest.table_id == table_id).update(
                {Guest.table_id: None, Guest.updated_at: datetime.utcnow()}, synchronize_session=False
            )
            db.delete(row)
            db.commit()
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def list_fs(event_id: str) -> List[TableRecord]:
        docs = _event_ref(event_id).collection("tables").order_by("number").get()
        return [_doc_record(d, _table_record) for d in docs]

    @staticmethod
    def create_fs(event_id: str, fields: Dict[str, Any]) -> TableRecord:
        ref = _event_ref(event_id).collection("tables").document()
        ref.set(fields)
        return _table_record(ref.id, fields)

    @staticmethod
    def update_fs(event_id: str, table_id: str, fields: Dict[str, Any]) -> TableRecord:
        ref = _event_ref(event_id).collection("tables").document(table_id)
        snap = ref.get()
        if not snap.exists:
            raise NotFoundError("Table", table_id)
        ref.set(fields, merge=True)
        return _table_record(table_id, {**(snap.to_dict() or {}), **fields})

    @staticmethod
    def delete_fs(event_id: str, table_id: str) -> None:
        event_ref = _event_ref(event_id)
        table_ref = event_ref.collection("tables").document(table_id)
        if not table_ref.get().exists:
            raise NotFoundError("Table", table_id)
        fs = get_firestore_client()
        batch = fs.batch()
        for doc in event_ref.collection("guests").where("table_id", "==", table_id).get():
            batch.update(doc.reference, {"table_id": None, "updated_at": datetime.utcnow().isoformat()})
        batch.delete(table_ref)
        batch.commit()


# -------- Guest repository --------

def _seated_people_sql(db: Session, event_id: str, table_id: str, exclude_guest_id: str) -> int:
    size = case((Guest.party_size >= 1, Guest.party_size), else_=1)
    total = db.query(func.coalesce(func.sum(size), 0)).filter(
        Guest.event_id == event_id,
        Guest.table_id == table_id,
        Guest.id != exclude_guest_id,
    ).scalar()
    return int(total or 0)


class GuestRepo:
    @staticmethod
    def list_sql(db: Session, event_id: str) -> List[GuestRecord]:
        rows = db.query(Guest).filter(Guest.event_id == event_id).order_by(Guest.name).all()
        return [guest_from_row(row) for row in rows]

    @staticmethod
    def _get_sql(db: Session, event_id: str, guest_id: str, lock: bool = False) -> Guest:
        query = db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == event_id)
        if lock:
            query = query.with_for_update()
        guest = query.first()
        if not guest:
            raise NotFoundError("Guest", guest_id)
        return guest

    @staticmethod
    def create_sql(db: Session, event_id: str, fields: Dict[str, Any]) -> GuestRecord:
        row = Guest(event_id=event_id, **fields)
        db.add(row)
        db.commit()
        db.refresh(row)
        return guest_from_row(row)

    @staticmethod
    def assign_table_sql(db: Session, event_id: str, guest_id: str, table_id: Optional[str]) -> GuestRecord:
        """Conditional write: re-checks capacity against committed rows.

        The table row is locked first so two writers seating people at the
        same table serialize on it.
        """
        try:
            guest = GuestRepo._get_sql(db, event_id, guest_id, lock=True)
            if table_id is not None and guest.table_id != table_id:
                table = db.query(Table).filter(
                    Table.id == table_id, Table.event_id == event_id
                ).with_for_update().first()
                if not table:
                    raise NotFoundError("Table", table_id)
                occupied = _seated_people_sql(db, event_id, table_id, guest_id)
                party_size = effective_party_size(guest.party_size)
                if occupied + party_size > table.capacity:
                    raise CapacityExceededError(table_id, table.capacity, occupied, party_size)
            guest.table_id = table_id
            guest.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(guest)
            return guest_from_row(guest)
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def update_fields_sql(db: Session, event_id: str, guest_id: str, fields: Dict[str, Any]) -> GuestRecord:
        """Plain field update for fields with no capacity semantics"""
        guest = GuestRepo._get_sql(db, event_id, guest_id)
        for key, value in fields.items():
            setattr(guest, key, value)
        guest.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(guest)
        return guest_from_row(guest)

    @staticmethod
    def delete_sql(db: Session, event_id: str, guest_id: str) -> None:
        guest = GuestRepo._get_sql(db, event_id, guest_id)
        db.delete(guest)
        db.commit()

    # Firestore guest docs under collection events/{event_id}/guests
    @staticmethod
    def list_fs(event_id: str) -> List[GuestRecord]:
        docs = _event_ref(event_id).collection("guests").order_by("name").get()
        return [_doc_record(d, _guest_record) for d in docs]

    @staticmethod
    def create_fs(event_id: str, fields: Dict[str, Any]) -> GuestRecord:
        ref = _event_ref(event_id).collection("guests").document()
        data = {**fields, "name_lower": fields["name"].lower(), "table_id": None, "checked_in": False}
        ref.set(data)
        return _guest_record(ref.id, data)

    @staticmethod
    def assign_table_fs(event_id: str, guest_id: str, table_id: Optional[str]) -> GuestRecord:
        fs = get_firestore_client()
        event_ref = _event_ref(event_id)

        @firestore.transactional
        def apply(transaction):
            guest_ref = event_ref.collection("guests").document(guest_id)
            snap = guest_ref.get(transaction=transaction)
            if not snap.exists:
                raise NotFoundError("Guest", guest_id)
            data = snap.to_dict() or {}
            if table_id is not None and data.get("table_id") != table_id:
                table_snap = event_ref.collection("tables").document(table_id).get(transaction=transaction)
                if not table_snap.exists:
                    raise NotFoundError("Table", table_id)
                capacity = int((table_snap.to_dict() or {}).get("capacity") or 0)
                seated = transaction.get(event_ref.collection("guests").where("table_id", "==", table_id))
                occupied = sum(
                    effective_party_size((d.to_dict() or {}).get("party_size"))
                    for d in seated if d.id != guest_id
                )
                party_size = effective_party_size(data.get("party_size"))
                if occupied + party_size > capacity:
                    raise CapacityExceededError(table_id, capacity, occupied, party_size)
            update = {"table_id": table_id, "updated_at": datetime.utcnow().isoformat()}
            transaction.update(guest_ref, update)
            return _guest_record(guest_id, {**data, **update})

        return apply(fs.transaction())

    @staticmethod
    def update_fields_fs(event_id: str, guest_id: str, fields: Dict[str, Any]) -> GuestRecord:
        ref = _event_ref(event_id).collection("guests").document(guest_id)
        snap = ref.get()
        if not snap.exists:
            raise NotFoundError("Guest", guest_id)
        update = {**fields, "updated_at": datetime.utcnow().isoformat()}
        ref.set(update, merge=True)
        return _guest_record(guest_id, {**(snap.to_dict() or {}), **update})

    @staticmethod
    def delete_fs(event_id: str, guest_id: str) -> None:
        ref = _event_ref(event_id).collection("guests").document(guest_id)
        if not ref.get().exists:
            raise NotFoundError("Guest", guest_id)
        ref.delete()


# -------- Category repository --------

class CategoryRepo:
    @staticmethod
    def list_sql(db: Session, event_id: str) -> List[CategoryRecord]:
        rows = db.query(Category).filter(Category.event_id == event_id).order_by(Category.created_at).all()
        return [CategoryRecord(id=row.id, name=row.name, side=row.side or "groom") for row in rows]

    @staticmethod
    def create_sql(db: Session, event_id: str, name: str, side: str) -> CategoryRecord:
        row = Category(event_id=event_id, name=name, side=side)
        db.add(row)
        db.commit()
        db.refresh(row)
        return CategoryRecord(id=row.id, name=row.name, side=row.side)

    @staticmethod
    def list_fs(event_id: str) -> List[CategoryRecord]:
        docs = _event_ref(event_id).collection("categories").order_by("created_at").get()
        results: List[CategoryRecord] = []
        for d in docs:
            item = d.to_dict() or {}
            results.append(CategoryRecord(id=d.id, name=item.get("name") or "", side=item.get("side") or "groom"))
        return results

    @staticmethod
    def create_fs(event_id: str, name: str, side: str) -> CategoryRecord:
        ref = _event_ref(event_id).collection("categories").document()
        ref.set({"name": name, "side": side, "created_at": datetime.utcnow().isoformat()})
        return CategoryRecord(id=ref.id, name=name, side=side)


# -------- Annotation repository --------

class AnnotationRepo:
    @staticmethod
    def list_sql(db: Session, event_id: str) -> List[AnnotationRecord]:
        rows = db.query(Annotation).filter(Annotation.event_id == event_id).order_by(Annotation.position).all()
        return [AnnotationRecord(id=row.id, x=row.x, y=row.y, text=row.text) for row in rows]

    @staticmethod
    def replace_sql(db: Session, event_id: str, annotations: Iterable[AnnotationRecord]) -> List[AnnotationRecord]:
        try:
            db.query(Annotation).filter(Annotation.event_id == event_id).delete(synchronize_session=False)
            rows = []
            for position, note in enumerate(annotations):
                row = Annotation(event_id=event_id, position=position, x=note.x, y=note.y, text=note.text)
                if note.id:
                    row.id = note.id
                db.add(row)
                rows.append(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return [AnnotationRecord(id=row.id, x=row.x, y=row.y, text=row.text) for row in rows]

    # Firestore shape: document "seating_maps/{event_id}" with an "annotations" array
    @staticmethod
    def list_fs(event_id: str) -> List[AnnotationRecord]:
        fs = get_firestore_client()
        snap = fs.collection("seating_maps").document(event_id).get()
        items = (snap.to_dict() or {}).get("annotations") if snap.exists else None
        return [AnnotationRecord(**item) for item in items or [] if isinstance(item, dict)]

    @staticmethod
    def replace_fs(event_id: str, annotations: Iterable[AnnotationRecord]) -> List[AnnotationRecord]:
        fs = get_firestore_client()
        notes = list(annotations)
        fs.collection("seating_maps").document(event_id).set(
            {"event_id": event_id, "annotations": [note.model_dump() for note in notes]}, merge=True
        )
        return notes


# -------- Backend-neutral facade --------

class RecordStore:
    """Picks the SQL or Firestore repository per call for one event session"""

    def __init__(self, db: Optional[Session] = None):
        self.db = db
        self.firestore = use_firestore()
        if not self.firestore and db is None:
            raise ValueError("A database session is required when Firestore is disabled")

    def event_exists(self, event_id: str) -> bool:
        return EventRepo.exists_fs(event_id) if self.firestore else EventRepo.exists_sql(self.db, event_id)

    def list_tables(self, event_id: str) -> List[TableRecord]:
        return TableRepo.list_fs(event_id) if self.firestore else TableRepo.list_sql(self.db, event_id)

    def create_table(self, event_id: str, fields: Dict[str, Any]) -> TableRecord:
        if self.firestore:
            return TableRepo.create_fs(event_id, fields)
        return TableRepo.create_sql(self.db, event_id, fields)

    def update_table(self, event_id: str, table_id: str, fields: Dict[str, Any]) -> TableRecord:
        if self.firestore:
            return TableRepo.update_fs(event_id, table_id, fields)
        return TableRepo.update_sql(self.db, event_id, table_id, fields)

    def delete_table(self, event_id: str, table_id: str) -> None:
        if self.firestore:
            return TableRepo.delete_fs(event_id, table_id)
        return TableRepo.delete_sql(self.db, event_id, table_id)

    def list_guests(self, event_id: str) -> List[GuestRecord]:
        return GuestRepo.list_fs(event_id) if self.firestore else GuestRepo.list_sql(self.db, event_id)

    def create_guest(self, event_id: str, fields: Dict[str, Any]) -> GuestRecord:
        if self.firestore:
            return GuestRepo.create_fs(event_id, fields)
        return GuestRepo.create_sql(self.db, event_id, fields)

    def assign_table(self, event_id: str, guest_id: str, table_id: Optional[str]) -> GuestRecord:
        if self.firestore:
            return GuestRepo.assign_table_fs(event_id, guest_id, table_id)
        return GuestRepo.assign_table_sql(self.db, event_id, guest_id, table_id)

    def update_guest(self, event_id: str, guest_id: str, fields: Dict[str, Any]) -> GuestRecord:
        if self.firestore:
            return GuestRepo.update_fields_fs(event_id, guest_id, fields)
        return GuestRepo.update_fields_sql(self.db, event_id, guest_id, fields)

    def delete_guest(self, event_id: str, guest_id: str) -> None:
        if self.firestore:
            return GuestRepo.delete_fs(event_id, guest_id)
        return GuestRepo.delete_sql(self.db, event_id, guest_id)

    def list_categories(self, event_id: str) -> List[CategoryRecord]:
        return CategoryRepo.list_fs(event_id) if self.firestore else CategoryRepo.list_sql(self.db, event_id)

    def create_category(self, event_id: str, name: str, side: str) -> CategoryRecord:
        if self.firestore:
            return CategoryRepo.create_fs(event_id, name, side)
        return CategoryRepo.create_sql(self.db, event_id, name, side)

    def list_annotations(self, event_id: str) -> List[AnnotationRecord]:
        return AnnotationRepo.list_fs(event_id) if self.firestore else AnnotationRepo.list_sql(self.db, event_id)

    def replace_annotations(self, event_id: str, annotations: Iterable[AnnotationRecord]) -> List[AnnotationRecord]:
        if self.firestore:
            return AnnotationRepo.replace_fs(event_id, annotations)
        return AnnotationRepo.replace_sql(self.db, event_id, annotations)
