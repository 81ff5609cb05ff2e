"""
Construction catalog service - selectable construction types per building component
"""
import time
import logging
from typing import Dict, List, Optional

from urbanai import config
from urbanai.api_client import ServiceClient
from urbanai.errors import APIError

logger = logging.getLogger(__name__)

CONSTRUCTION_TYPES = ['Fenster', 'Außenwand', 'Dach', 'Boden']

# Component name in the catalog -> field of the analysis payload
CONSTRUCTION_TYPE_MAPPING = {
    'Fenster': 'window_construction',
    'Außenwand': 'wall_construction',
    'Dach': 'roof_construction',
    'Boden': 'base_construction'
}

DEFAULT_SELECTIONS = {
    'window_construction': 'W-330-001',
    'wall_construction': 'F-330-001',
    'roof_construction': 'R-360-001',
    'base_construction': 'B-360-001',
    'dynamic_lca': False
}


class ConstructionSelections:
    """The construction chosen for each component, plus the dynamic LCA switch"""

    def __init__(self, **overrides):
        self.values = dict(DEFAULT_SELECTIONS)
        for key, value in overrides.items():
            if key not in self.values:
                raise ValueError(f"Unknown construction selection: {key}")
            self.values[key] = value

    def update_selection(self, construction_type: str, construction_number: str) -> bool:
        """Select a construction by catalog component name; unknown components are ignored"""
        key = CONSTRUCTION_TYPE_MAPPING.get(construction_type)
        if not key:
            logger.warning(f"Unknown construction type: {construction_type}")
            return False
        self.values[key] = construction_number
        return True

    def reset(self):
        self.values = dict(DEFAULT_SELECTIONS)

    def __getitem__(self, key):
        return self.values[key]

    def get(self, key, default=None):
        return self.values.get(key, default)

    def to_dict(self) -> Dict:
        return dict(self.values)


class ConstructionCatalogService(ServiceClient):
    service_name = 'construction-catalog'

    def __init__(self, base_url: Optional[str] = None, cache_ttl: Optional[int] = None, **kwargs):
        super().__init__(base_url or config.ANALYSIS_API_URL, **kwargs)
        self.cache_ttl = config.CONSTRUCTION_CACHE_TTL if cache_ttl is None else cache_ttl
        self._cache = {}  # construction_type -> (timestamp, constructions)

    def _cache_get(self, construction_type: str) -> Optional[List[Dict]]:
        entry = self._cache.get(construction_type)
        if not entry:
            return None
        ts, constructions = entry
        if time.time() - ts > self.cache_ttl:
            del self._cache[construction_type]
            return None
        return constructions

    def fetch_construction_list(self, construction_type: str) -> List[Dict]:
        cached = self._cache_get(construction_type)
        if cached is not None:
            return cached

        data = self._json('GET', '/api/construction-hvac/construction/list',
                          params={'construction_type': construction_type},
                          headers={'Content-Type': 'application/json'})
        constructions = data.get('constructions', []) if isinstance(data, dict) else []
        logger.info(f"Loaded {len(constructions)} constructions of type {construction_type}")
        self._cache[construction_type] = (time.time(), constructions)
        return constructions

    def fetch_all_construction_types(self) -> Dict[str, List[Dict]]:
        """Catalog for every component; a failing component is logged and left empty"""
        catalog = {}
        for construction_type in CONSTRUCTION_TYPES:
            try:
                catalog[construction_type] = self.fetch_construction_list(construction_type)
            except APIError as e:
                logger.error(f"Error fetching construction type {construction_type}: {e}")
                catalog[construction_type] = []
        return catalog

    def get_construction_options(self, construction_type: str) -> List[Dict]:
        return self._cache_get(construction_type) or []
