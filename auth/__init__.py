"""auth/ -- Authentication and authorization package for socialnet.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or social/.
api/ imports from auth/, not the other way around.
"""
