"""auth/ -- Authentication core for authcore.

Validation, password hashing, token issuance, the user store and the
register/login/refresh/reset flows.

Layer rule: auth/ imports stdlib, third-party libraries and core.config.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
