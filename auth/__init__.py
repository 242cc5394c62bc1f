"""auth/ -- Account registration, sign-in sessions and authorization for AskHub.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
Only auth/dependencies.py imports fastapi; the rest is framework-free.
"""
