"""
Agent implementations for ReviewSync.

- Ingestion Agent: paginated upstream fetch with stale fallback
- Change Detection Agent: cheap "has the place got new reviews" check
"""
