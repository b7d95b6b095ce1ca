"""auth/ -- Authentication and authorization package for MedTrack.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or pharmacy/.
api/ and pharmacy/ import from auth/, not the other way around.
"""
