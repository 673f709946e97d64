"""auth/ -- Credential authentication and refresh-token lifecycle for tokenward.

Layer rule: auth/ imports only stdlib + third-party libraries, plus the
Settings type from core/ for constructor signatures. It does NOT import from
api/. api/ imports from auth/, not the other way around.
"""
