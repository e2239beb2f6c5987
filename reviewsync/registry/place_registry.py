"""
Place Registry - static lookup from caller context to upstream place id.
"""

import json
import logging
from typing import Dict, List, Mapping, Optional, Union

from reviewsync.errors import UnknownContext
from reviewsync.models.place import Place

logger = logging.getLogger(__name__)


class PlaceRegistry:
    """
    Read-only table of known places, keyed by context.

    Usage:
        registry = PlaceRegistry({"nema_leblon": "ChIJF8dM_x_VmwARHGUmlUaKD5M"})
        place_id = registry.resolve("nema_leblon")
    """

    def __init__(self, places: Mapping[str, Union[str, Mapping[str, str]]]):
        """
        Build registry from a mapping.

        Args:
            places: context -> place_id, or context -> {"place_id": ..., "name": ...}

        Raises:
            ValueError: If an entry is malformed or has no place_id
        """
        self.places: Dict[str, Place] = {}

        for context_key, entry in places.items():
            if isinstance(entry, str):
                place_id, name = entry, ""
            elif isinstance(entry, Mapping):
                place_id, name = entry.get("place_id", ""), entry.get("name") or ""
            else:
                raise ValueError(f"Place '{context_key}' has an invalid entry")

            if not place_id:
                raise ValueError(f"Place '{context_key}' has no place_id")

            self.places[context_key] = Place(context_key=context_key, place_id=place_id, name=name)

        logger.debug(f"Loaded {len(self.places)} places")

    @classmethod
    def from_json(cls, path: str) -> "PlaceRegistry":
        """Load registry from a JSON file holding the same mapping shape."""
        with open(path, "r") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Place file {path} must contain a JSON object")

        logger.info(f"Loaded place table from {path}")
        return cls(data)

    def get(self, context_key: Optional[str]) -> Place:
        """
        Look up a place by context.

        Raises:
            UnknownContext: If context_key is empty or not in the table
        """
        if not context_key or context_key not in self.places:
            raise UnknownContext(context_key)
        return self.places[context_key]

    def resolve(self, context_key: Optional[str]) -> str:
        """Return the upstream place id for context_key."""
        return self.get(context_key).place_id

    def contexts(self) -> List[str]:
        """All known context keys, sorted."""
        return sorted(self.places)
