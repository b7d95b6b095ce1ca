"""pharmacy/ -- Prescription records and the dispense workflow.

Layer rule: pharmacy/ imports from core/ and auth/.
It does NOT import from api/.
"""
