"""audit/ -- Append-only audit trail for authentication and access decisions.

Layer rule: audit/ imports only core/ plus stdlib and third-party libraries.
auth/, tasks/ and api/ import from audit/, not the other way around.
"""
