"""auth/ -- Authentication and authorization package for the garage manager.

Layer rule: auth/ imports only stdlib, third-party libraries, core/, and cache/.
It does NOT import from api/, web/, or shop/.
api/ and web/ import from auth/, not the other way around.
"""
