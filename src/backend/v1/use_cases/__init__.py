"""Use-case level logic.

These modules parse, validate, calculate and summarize refund data returned
by integrations (Google Sheets).

They should be:
- deterministic
- unit-testable
- free of web/framework code
"""
