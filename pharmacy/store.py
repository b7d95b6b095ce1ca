"""
pharmacy/store.py -- SQLAlchemy-backed persistence layer for prescriptions.

Uses SQLAlchemy Core (not ORM) so the dataclass in pharmacy/models.py stays
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper, same as auth/store.py.

Dispensing is a conditional write: mark_dispensed() only updates rows whose
dispense_date is still NULL and reports whether it changed anything. Two
pharmacists racing on the same prescription therefore get exactly one
success.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = PrescriptionStore("sqlite:///medtrack.db")
    rx_id = store.create_prescription(prescription)
    store.mark_dispensed(rx_id, pharmacist_id=7, remarks="Collected by spouse")
    store.close()
"""

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from pharmacy.models import Prescription

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_prescriptions = Table(
    "prescriptions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", Integer, nullable=False, index=True),
    Column("med_track_id", String(16), nullable=False, index=True),
    Column("doctor_id", Integer, nullable=False, index=True),
    Column("diagnosis", Text, nullable=False),
    Column("medicine_names", Text, nullable=False),  # JSON array serialized as text
    Column("notes", Text),
    Column("issue_date", String(32), nullable=False),
    Column("dispense_date", String(32)),
    Column("dispensed_by", Integer),
    Column("dispense_remarks", Text),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_sqlite_memory(db_url: str) -> bool:
    return db_url.startswith("sqlite") and (":memory:" in db_url or "mode=memory" in db_url)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrescriptionStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        engine_kwargs: dict = {"connect_args": connect_args}
        if _is_sqlite_memory(db_url):
            # One shared connection per engine; the in-memory database lives
            # as long as it does.
            engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_prescription(self, prescription: Prescription) -> int:
        """Insert a new prescription and return its assigned database ID.

        issue_date defaults to now. Dispense fields are always written as
        NULL -- a prescription is never created already dispensed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _prescriptions.insert().values(
                    patient_id=prescription.patient_id,
                    med_track_id=prescription.med_track_id,
                    doctor_id=prescription.doctor_id,
                    diagnosis=prescription.diagnosis,
                    medicine_names=json.dumps(prescription.medicine_names),
                    notes=prescription.notes,
                    issue_date=prescription.issue_date or _now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_prescription(self, prescription_id: int) -> Optional[Prescription]:
        """Fetch a single prescription by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_prescriptions.select().where(_prescriptions.c.id == prescription_id)).fetchone()
        return _row_to_prescription(row) if row is not None else None

    def list_for_patient(self, patient_id: int) -> list[Prescription]:
        """Return a patient's prescriptions, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _prescriptions.select()
                .where(_prescriptions.c.patient_id == patient_id)
                .order_by(_prescriptions.c.issue_date.desc(), _prescriptions.c.id.desc())
            ).fetchall()
        return [_row_to_prescription(r) for r in rows]

    def list_by_doctor(self, doctor_id: int) -> list[Prescription]:
        """Return prescriptions issued by one doctor, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _prescriptions.select()
                .where(_prescriptions.c.doctor_id == doctor_id)
                .order_by(_prescriptions.c.issue_date.desc(), _prescriptions.c.id.desc())
            ).fetchall()
        return [_row_to_prescription(r) for r in rows]

    def mark_dispensed(self, prescription_id: int, pharmacist_id: int, remarks: Optional[str] = None) -> bool:
        """Stamp dispense_date/dispensed_by/dispense_remarks on a pending prescription.

        Returns True if the row was updated, False if it does not exist or
        was already dispensed. Callers distinguish the two with
        get_prescription().
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _prescriptions.update()
                .where((_prescriptions.c.id == prescription_id) & (_prescriptions.c.dispense_date.is_(None)))
                .values(
                    dispense_date=_now_iso(),
                    dispensed_by=pharmacist_id,
                    dispense_remarks=remarks,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_prescription(row) -> Prescription:
    return Prescription(
        id=row.id,
        patient_id=row.patient_id,
        med_track_id=row.med_track_id,
        doctor_id=row.doctor_id,
        diagnosis=row.diagnosis,
        medicine_names=json.loads(row.medicine_names or "[]"),
        notes=row.notes,
        issue_date=row.issue_date,
        dispense_date=row.dispense_date,
        dispensed_by=row.dispensed_by,
        dispense_remarks=row.dispense_remarks,
    )
