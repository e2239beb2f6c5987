"""
Place data model.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Place:
    """A known place: caller-facing context key and upstream place id."""
    context_key: str
    place_id: str
    name: str = ""
