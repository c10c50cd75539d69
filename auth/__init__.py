"""auth/ -- Credential, token and session package for the NexusX auth service.

Layer rule: auth/ imports only stdlib + third-party libraries (fastapi only in
dependencies.py). It does NOT import from api/ or core/; configuration values
arrive as constructor arguments. api/ imports from auth/, not the other way
around.
"""
