"""auth/ -- Authentication core for Loverse.

Digest handshake (digest.py), session tokens (tokens.py), session store
(sessions.py), credential repository (store.py) and request identity
resolution (dependencies.py).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
