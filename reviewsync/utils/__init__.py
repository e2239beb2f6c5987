"""
Utility modules for ReviewSync.

- Storage: review store gateway over SQLAlchemy
- Reviews API: upstream page client
- Export: CSV export of reviews
"""
