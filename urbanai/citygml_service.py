"""
CityGML geometry service - building surfaces as GeoJSON-like feature collections
"""
import json
import logging
from typing import Dict, List, Optional, Union

from urbanai import config
from urbanai.api_client import ServiceClient
from urbanai.errors import APIError

logger = logging.getLogger(__name__)


class CityGMLService(ServiceClient):
    service_name = 'citygml'

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or config.API_BASE_URL, **kwargs)

    def get_geometry(self, gmlids: Union[str, List[str]], calculate_window_areas: bool = False) -> Dict:
        """Fetch surface geometry for one or more GML IDs"""
        if isinstance(gmlids, str):
            gmlids = [gmlids]
        gmlids = [g.strip() for g in gmlids if g and g.strip()]
        if not gmlids:
            raise ValueError('At least one GML ID is required')

        params = {
            'gmlids': ','.join(gmlids),
            'calculate_window_areas': 'true' if calculate_window_areas else 'false'
        }
        data = self._json('GET', '/api/citygml/get_geometry', params=params, authenticated=True)
        logger.info(f"Fetched geometry for {len(gmlids)} GML ID(s)")
        return data


def surface_areas(geometry_response: Dict) -> List[Dict]:
    """summed_surface_areas of a geometry response as labelled m² values."""
    summed = (geometry_response or {}).get('summed_surface_areas') or {}
    surfaces = []
    for label, value in summed.items():
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Skipping non-numeric surface area {label}={value!r}")
            continue
        surfaces.append({'label': label, 'value': numeric, 'unit': 'm²'})
    return surfaces


class MapDataService(ServiceClient):
    """Building overview FeatureCollection for the 2D map, cached per instance"""

    service_name = 'map-data'

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or config.MAP_API_URL, **kwargs)
        self._map_data: Optional[Dict] = None

    def fetch_map_data(self) -> Dict:
        if self._map_data is not None:
            logger.debug('Using cached map data')
            return self._map_data

        response = self._request('GET', '/frontend/geometry_retrieve', authenticated=True,
                                 headers={'Content-Type': 'application/json'})
        try:
            data = response.json()
            # the endpoint sometimes returns the collection JSON-encoded a second time
            if isinstance(data, str):
                data = json.loads(data)
        except ValueError as e:
            raise APIError(f"Invalid GeoJSON data received: {e}", response.status_code) from e

        if not isinstance(data, dict) or data.get('type') != 'FeatureCollection' \
                or not isinstance(data.get('features'), list):
            raise APIError('Invalid GeoJSON data received', response.status_code)

        self._map_data = data
        return data

    def clear_map_data(self):
        self._map_data = None
