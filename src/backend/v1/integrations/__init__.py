"""Integration adapters for external systems (Google Sheets).

Keep these modules small and testable:
- No FastAPI request/response objects
- No calculation logic
- Pure IO + error translation
"""
