"""auth/ -- Authentication and authorization package for the task tracker.

Layer rule: auth/ imports from core/, orgs/ and audit/ plus stdlib and
third-party libraries. It does NOT import from api/ or tasks/.
api/ and tasks/ import from auth/, not the other way around.
"""
