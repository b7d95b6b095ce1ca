"""
pharmacy/models.py -- Domain dataclasses for prescriptions.

Pure data containers. All rules (who may dispense, re-dispense rejection)
live in pharmacy/service.py; persistence lives in pharmacy/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Prescription:
    """A doctor's prescription for one patient.

    dispense_date is None until a pharmacist dispenses it; once set it never
    changes. dispensed_by holds the pharmacist's user id.

    id is None before the record is written to the database.
    """

    patient_id: int
    med_track_id: str
    doctor_id: int
    diagnosis: str
    medicine_names: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    issue_date: str = ""  # ISO 8601, set by store on insert
    dispense_date: Optional[str] = None  # ISO 8601
    dispensed_by: Optional[int] = None
    dispense_remarks: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_dispensed(self) -> bool:
        return self.dispense_date is not None
