"""
Interfaces module - surfaces exposed to the surrounding application.

- rebuild: Rebuild trigger endpoint (JSON request/response handler)
"""
