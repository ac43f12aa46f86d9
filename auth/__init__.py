"""auth/ -- Authentication and authorization package for the Fabric QR server.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or materials/.
api/ imports from auth/, not the other way around.
"""
