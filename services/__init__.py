"""
Service layer for CivicLens: issues, civic updates, dashboard
"""
