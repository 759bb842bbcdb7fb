"""
Tests for the event session: write-through persistence against SQLite
"""

import asyncio
import threading
import time
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from seating.core.db import Base
from seating.core.errors import CapacityExceededError, NotFoundError, PersistenceError, ValidationError
from seating.models import Event, Guest, Table
from seating.schemas.annotation import AnnotationRecord
from seating.schemas.category import CategoryCreate
from seating.schemas.guest import GuestCreate, GuestRecord, RsvpStatus
from seating.schemas.table import TableCreate, TableRecord, TableShape, TableUpdate
from seating.services.event_session import EventSeatingSession
from seating.services.repositories import RecordStore

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_session.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def run(coro):
    return asyncio.run(coro)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def other_device():
    """A second database session standing in for another admin device"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def wedding(db_session):
    """T1 seats 10, T2 seats 4, R1 is a reserve table of 8"""
    event = Event(name="Garden Wedding", date=datetime(2025, 6, 12), organizer_email="host@example.com")
    db_session.add(event)
    db_session.flush()

    tables = {
        "T1": Table(event_id=event.id, number=1, name="T1", capacity=10),
        "T2": Table(event_id=event.id, number=2, name="T2", capacity=4, shape="regular-rectangle"),
        "R1": Table(event_id=event.id, number=99, name="R1", capacity=8, shape="reserve"),
    }
    db_session.add_all(tables.values())
    db_session.flush()

    guests = {
        "Alice": Guest(event_id=event.id, name="Alice", party_size=6, rsvp_status="coming"),
        "Ben": Guest(event_id=event.id, name="Ben", party_size=5, rsvp_status="coming"),
        "Carmel": Guest(event_id=event.id, name="Carmel", party_size=2, rsvp_status="pending"),
        "Dana": Guest(event_id=event.id, name="Dana", party_size=None, rsvp_status="maybe"),
    }
    db_session.add_all(guests.values())
    db_session.commit()

    return {
        "event_id": event.id,
        "tables": {name: row.id for name, row in tables.items()},
        "guests": {name: row.id for name, row in guests.items()},
    }

@pytest.fixture
def session(db_session, wedding):
    seating = EventSeatingSession(wedding["event_id"], RecordStore(db_session), timeout=5)
    run(seating.load())
    return seating

def stored_table_id(db, guest_id):
    db.expire_all()
    return db.query(Guest).filter(Guest.id == guest_id).first().table_id

def test_load_maps_records(session, wedding):
    tables = session.list_tables()
    guests = session.list_guests()

    assert [t.name for t in tables] == ["T1", "T2", "R1"]
    assert tables[2].shape == TableShape.RESERVE
    assert [g.name for g in guests] == ["Alice", "Ben", "Carmel", "Dana"]
    # Unknown status reads as pending, missing party size stays missing
    dana = session.get_guest(wedding["guests"]["Dana"])
    assert dana.rsvp_status == RsvpStatus.PENDING
    assert dana.party_size is None
    assert session.stats().invited_people == 14

def test_reads_require_load(db_session, wedding):
    seating = EventSeatingSession(wedding["event_id"], RecordStore(db_session))

    with pytest.raises(RuntimeError):
        seating.stats()

def test_missing_event_raises_not_found(db_session):
    seating = EventSeatingSession("no-such-event", RecordStore(db_session))

    with pytest.raises(NotFoundError):
        run(seating.load())
    assert not seating.loaded

def test_assign_writes_through(session, wedding, other_device):
    alice, t1 = wedding["guests"]["Alice"], wedding["tables"]["T1"]

    guest = run(session.assign(alice, t1))

    assert guest.table_id == t1
    assert stored_table_id(other_device, alice) == t1
    assert session.stats().seated_count == 1

def test_full_table_rejects_before_writing(session, wedding, other_device):
    t1 = wedding["tables"]["T1"]
    run(session.assign(wedding["guests"]["Alice"], t1))

    with pytest.raises(CapacityExceededError):
        run(session.assign(wedding["guests"]["Ben"], t1))

    assert stored_table_id(other_device, wedding["guests"]["Ben"]) is None
    assert session.get_guest(wedding["guests"]["Ben"]).table_id is None

def test_store_rejects_when_another_device_filled_the_table(session, wedding, other_device):
    """The local view still shows T1 empty; the commit-time check catches it"""
    t1 = wedding["tables"]["T1"]
    alice = other_device.query(Guest).filter(Guest.id == wedding["guests"]["Alice"]).first()
    alice.table_id = t1
    other_device.commit()

    with pytest.raises(CapacityExceededError):
        run(session.assign(wedding["guests"]["Ben"], t1))

    # The session reloaded after the rejection
    assert not session.stale
    assert session.get_guest(wedding["guests"]["Alice"]).table_id == t1
    assert session.engine.occupancy(t1) == 6
    assert stored_table_id(other_device, wedding["guests"]["Ben"]) is None

def test_delete_guest_frees_seats(session, wedding, other_device):
    t1 = wedding["tables"]["T1"]
    alice, ben = wedding["guests"]["Alice"], wedding["guests"]["Ben"]
    run(session.assign(alice, t1))

    run(session.delete_guest(alice))
    run(session.assign(ben, t1))

    assert other_device.query(Guest).filter(Guest.id == alice).first() is None
    assert session.engine.occupancy(t1) == 5

def test_delete_guest_removed_elsewhere_reloads(session, wedding, other_device):
    carmel = wedding["guests"]["Carmel"]
    other_device.query(Guest).filter(Guest.id == carmel).delete()
    other_device.commit()

    with pytest.raises(NotFoundError):
        run(session.delete_guest(carmel))

    with pytest.raises(NotFoundError):
        session.get_guest(carmel)

def test_unassign_and_move_many(session, wedding):
    t2 = wedding["tables"]["T2"]
    guests = wedding["guests"]

    result = run(session.move_many([guests["Carmel"], guests["Alice"], guests["Dana"]], t2))

    assert result.moved == [guests["Carmel"], guests["Dana"]]
    assert [f.reason for f in result.failed] == ["capacity_exceeded"]
    assert session.engine.occupancy(t2) == 3

    assert run(session.unassign(guests["Carmel"])).table_id is None
    assert session.engine.occupancy(t2) == 1

def test_reserve_table_opens_after_assignment(session, wedding):
    before = session.stats()
    run(session.assign(wedding["guests"]["Carmel"], wedding["tables"]["R1"]))
    after = session.stats()

    assert before.total_capacity == 14
    assert after.total_capacity == 22
    assert after.table_stats.opened_reserve == 1

def test_failed_write_leaves_memory_untouched(session, wedding, monkeypatch):
    def assign_table(event_id, guest_id, table_id):
        raise OperationalError("UPDATE guests", {}, Exception("database is locked"))

    monkeypatch.setattr(session.store, "assign_table", assign_table)

    with pytest.raises(PersistenceError):
        run(session.assign(wedding["guests"]["Alice"], wedding["tables"]["T1"]))

    assert session.get_guest(wedding["guests"]["Alice"]).table_id is None
    assert session.stale

def test_slow_store_times_out():
    class SlowStore:
        def event_exists(self, event_id):
            time.sleep(0.5)
            return True

    seating = EventSeatingSession("EVT1", SlowStore(), timeout=0.05)

    with pytest.raises(PersistenceError):
        run(seating.load())
    assert not seating.loaded

def test_check_in_and_rsvp(session, wedding, other_device):
    ben = wedding["guests"]["Ben"]

    guest = run(session.set_checked_in(ben, True))
    assert guest.checked_in
    assert guest.checked_in_at is not None
    assert session.stats().checked_in_count == 1

    guest = run(session.set_checked_in(ben, False))
    assert not guest.checked_in
    assert guest.checked_in_at is None

    guest = run(session.set_rsvp_status(ben, "declined"))
    assert guest.rsvp_status == RsvpStatus.DECLINED
    other_device.expire_all()
    assert other_device.query(Guest).filter(Guest.id == ben).first().rsvp_status == "declined"

    with pytest.raises(ValidationError):
        run(session.set_rsvp_status(ben, "maybe"))
    with pytest.raises(ValidationError):
        run(session.set_checked_in(ben, "yes"))

def test_capacity_cut_keeps_seated_guests(session, wedding):
    t1 = wedding["tables"]["T1"]
    run(session.assign(wedding["guests"]["Alice"], t1))

    table = run(session.replace_table(t1, TableUpdate(capacity=3)))

    assert table.capacity == 3
    assert table.name == "T1"
    assert session.get_guest(wedding["guests"]["Alice"]).table_id == t1
    row = next(r for r in session.stats().tables if r.table_id == t1)
    assert row.over_capacity
    with pytest.raises(CapacityExceededError):
        run(session.assign(wedding["guests"]["Dana"], t1))

def test_delete_table_unseats_guests(session, wedding, other_device):
    t2 = wedding["tables"]["T2"]
    carmel = wedding["guests"]["Carmel"]
    run(session.assign(carmel, t2))

    run(session.delete_table(t2))

    assert session.get_guest(carmel).table_id is None
    assert stored_table_id(other_device, carmel) is None
    with pytest.raises(NotFoundError):
        session.get_table(t2)

def test_add_records(session, wedding, db_session):
    table = run(session.add_table(TableCreate(number=3, capacity=6)))
    guest = run(session.add_guest(GuestCreate(name="Eli", party_size=3, rsvp_status="coming")))
    category = run(session.add_category(CategoryCreate(name="Neighbours", side="bride")))

    assert session.get_table(table.id).capacity == 6
    assert session.get_guest(guest.id).party_size == 3
    assert session.categories[-1] == category

    run(session.assign(guest.id, table.id))

    fresh = EventSeatingSession(wedding["event_id"], RecordStore(db_session))
    run(fresh.load())
    assert fresh.get_guest(guest.id).table_id == table.id
    assert [c.name for c in fresh.categories] == ["Neighbours"]

def test_replace_annotations(session, wedding, db_session):
    saved = run(session.replace_annotations([
        AnnotationRecord(x=10, y=20, text="Stage"),
        AnnotationRecord(x=300, y=40, text="Bar"),
    ]))

    assert all(note.id for note in saved)
    assert [n.text for n in session.annotations.list_annotations()] == ["Stage", "Bar"]

    run(session.replace_annotations([AnnotationRecord(x=0, y=0, text="Dance floor")]))

    fresh = EventSeatingSession(wedding["event_id"], RecordStore(db_session))
    run(fresh.load())
    assert [n.text for n in fresh.annotations.list_annotations()] == ["Dance floor"]

class StallingStore:
    """In-memory store whose first assign_table outlasts the session timeout"""

    def __init__(self, stall=0.3):
        self.stall = stall
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.assign_calls = []

    def _enter(self):
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _leave(self):
        with self.lock:
            self.active -= 1

    def event_exists(self, event_id):
        return True

    def list_tables(self, event_id):
        return [TableRecord(id="T1", capacity=10)]

    def list_guests(self, event_id):
        return [GuestRecord(id=guest_id, name=guest_id) for guest_id in ("A", "B", "C")]

    def list_categories(self, event_id):
        return []

    def list_annotations(self, event_id):
        return []

    def assign_table(self, event_id, guest_id, table_id):
        self._enter()
        try:
            self.assign_calls.append(guest_id)
            if len(self.assign_calls) == 1:
                time.sleep(self.stall)
            return GuestRecord(id=guest_id, name=guest_id, table_id=table_id)
        finally:
            self._leave()

def test_batch_stops_after_store_timeout():
    store = StallingStore()
    seating = EventSeatingSession("EVT1", store, timeout=0.05)
    run(seating.load())

    result = run(seating.move_many(["A", "B", "C"], "T1"))

    assert result.moved == []
    assert [f.id for f in result.failed] == ["A", "B", "C"]
    assert all(f.reason == "persistence_error" for f in result.failed)
    # Nothing ran next to the abandoned write
    assert store.assign_calls == ["A"]
    assert store.max_active == 1
    assert all(guest.table_id is None for guest in seating.list_guests())

def test_session_refuses_store_after_timeout():
    store = StallingStore()
    seating = EventSeatingSession("EVT1", store, timeout=0.05)
    run(seating.load())

    with pytest.raises(PersistenceError):
        run(seating.assign("A", "T1"))
    with pytest.raises(PersistenceError):
        run(seating.assign("B", "T1"))
    with pytest.raises(PersistenceError):
        run(seating.refresh())

    assert store.assign_calls == ["A"]
    assert seating.get_guest("B").table_id is None
