"""auth/ -- Authentication package for SongVault.

Credential store, session token codec, registration/login flow and the auth
gate dependency.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or library/.
api/ imports from auth/, not the other way around.
"""
