"""auth/ -- Session and authorization package for the admin console.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or services/.
api/, web/, and services/ import from auth/, not the other way around.
"""
