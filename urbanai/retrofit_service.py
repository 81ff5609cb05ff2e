"""
Energy / retrofit analysis service

Builds the analyze-retrofit request from building data, geometry and the user's
construction and CO2 scenario choices. The emissions, cost and LCA numbers are
all computed by the analysis API.
"""

import re
import logging
from datetime import datetime
from typing import Dict, List, Optional

from urbanai import config
from urbanai.api_client import ServiceClient
from urbanai.errors import PayloadError

logger = logging.getLogger(__name__)

SYSTEM_TYPES = ['Öl/Gas', 'Wärmepumpe', 'Fernwärme', 'Biomasse']
DEFAULT_SYSTEM_TYPE = 'Öl/Gas'
DEFAULT_SUBSYSTEM_TYPE = 'Gas'
DEFAULT_BUILDING_CATEGORY = 'Wohngebäude'
DEFAULT_CONSTRUCTION_YEAR = '1950'
TIME_PREFERENCE_RATE = 0.03


def get_building_category(assumptions: Optional[Dict]) -> str:
    return (assumptions or {}).get('enob_category') or DEFAULT_BUILDING_CATEGORY


def parse_construction_year(construction_year) -> str:
    """Construction year as a string, or 1950 when missing or implausible"""
    if not construction_year:
        return DEFAULT_CONSTRUCTION_YEAR
    year_str = str(construction_year)
    match = re.match(r'\s*([+-]?\d+)', year_str)
    if not match:
        logger.warning(f"Invalid construction year: {construction_year!r}, using {DEFAULT_CONSTRUCTION_YEAR}")
        return DEFAULT_CONSTRUCTION_YEAR
    year = int(match.group(1))
    if year < 1900 or year > datetime.now().year:
        logger.warning(f"Invalid construction year: {construction_year!r}, using {DEFAULT_CONSTRUCTION_YEAR}")
        return DEFAULT_CONSTRUCTION_YEAR
    return year_str


def map_to_system_type(hvac_type: Optional[str]) -> str:
    return hvac_type if hvac_type in SYSTEM_TYPES else DEFAULT_SYSTEM_TYPE


def _gmlids(building: Dict) -> List[str]:
    return [m.get('gmlid') for m in building.get('gmlid_gebid_mapping') or [] if m.get('gmlid')]


def _year(value) -> int:
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise PayloadError(f"Invalid year: {value!r}") from e


def build_base_scenario_payload(building: Dict, geometry: Dict,
                                co2_reduction_scenario: str, co2_cost_scenario: str) -> Dict:
    """Status-quo analysis of the building as it stands"""
    if not building or not (geometry or {}).get('results'):
        raise PayloadError('Missing building or geometry data for base scenario analysis')
    assumptions = building.get('buildings_assumptions') or {}

    return {
        'building_id': assumptions.get('building_id'),
        'gebplz': assumptions.get('gebplz'),
        'building_category': get_building_category(assumptions),
        'construction_year': parse_construction_year(assumptions.get('construction_year')),
        'geometry_data': dict(geometry['results']),
        'gmlid_list': _gmlids(building),
        'system_type': assumptions.get('current_system_type'),
        'retrofit_subsystem_type': DEFAULT_SUBSYSTEM_TYPE,
        'co2_reduction_scenario': co2_reduction_scenario,
        'co2_cost_scenario': co2_cost_scenario
    }


def build_construction_payload(building: Dict, geometry: Dict, selections: Dict,
                               co2_reduction_scenario: str, co2_cost_scenario: str,
                               retrofit_scenario: Optional[Dict] = None) -> Dict:
    """Life-cycle analysis with explicit construction choices, optionally with a retrofit"""
    if not building or not geometry:
        raise PayloadError('Fehlende Gebäudedaten für die Analyse')

    assumptions = building.get('buildings_assumptions')
    if not assumptions:
        raise PayloadError('Gebäudeannahmen (buildings_assumptions) sind nicht verfügbar')
    gebid = assumptions.get('gebid')
    if not gebid:
        raise PayloadError('Gebäude-ID (GEBID) ist nicht verfügbar')

    gebplz = str(assumptions.get('gebplz') or str(gebid)[:5] or '00000')
    if len(gebplz) < 5:
        raise PayloadError(f"Ungültige Postleitzahl: {gebplz}. Mindestens 5 Zeichen erforderlich.")

    hvac = (retrofit_scenario or {}).get('hvac') or {}
    payload = {
        'building_id': gebid,
        'gebplz': gebplz,
        'building_category': get_building_category(assumptions),
        'construction_year': parse_construction_year(assumptions.get('epl')),
        'system_type': hvac.get('hvac_type') or DEFAULT_SYSTEM_TYPE,
        'window_construction': selections.get('window_construction'),
        'wall_construction': selections.get('wall_construction'),
        'roof_construction': selections.get('roof_construction'),
        'base_construction': selections.get('base_construction'),
        'co2_reduction_scenario': co2_reduction_scenario,
        'co2_cost_scenario': co2_cost_scenario,
        'gmlid_list': _gmlids(building),
        'geometry_data': geometry.get('results') or geometry,
        'dynamic_lca': bool(selections.get('dynamic_lca')),
        'time_preference_rate': TIME_PREFERENCE_RATE,
        'retrofit_subsystem_type': hvac.get('hvac_type') or DEFAULT_SUBSYSTEM_TYPE
    }

    if retrofit_scenario:
        energy_standard = retrofit_scenario.get('energy_standard')
        if energy_standard and retrofit_scenario.get('construction_year'):
            payload['retrofit_scenario_construction'] = energy_standard.get('id')
            payload['retrofit_construction_year'] = _year(retrofit_scenario['construction_year'])
        if hvac and retrofit_scenario.get('hvac_year'):
            payload['retrofit_system_type'] = hvac.get('hvac_type')
            payload['retrofit_hvac_year'] = _year(retrofit_scenario['hvac_year'])

    return payload


def build_retrofit_scenario_payload(building: Dict, geometry: Dict, retrofit_scenario: Optional[Dict],
                                    co2_reduction_scenario: str, co2_cost_scenario: str,
                                    hvac_options: Optional[List[Dict]] = None) -> Dict:
    """Analysis of a retrofit scenario (or the status quo when no scenario is given)"""
    if not building or not (geometry or {}).get('results'):
        raise PayloadError('Fehlende Gebäudedaten für die Analyse')

    assumptions = building.get('buildings_assumptions') or {}
    hvac = (retrofit_scenario or {}).get('hvac') or {}
    selected_hvac = None
    if hvac:
        selected_hvac = next(
            (item for item in hvac_options or [] if item.get('hvac_number') == hvac.get('hvac_number')),
            None
        )

    return {
        'building_id': assumptions.get('gebid'),
        'gebplz': (assumptions.get('gebid') or '').split(' ')[0],
        'building_category': get_building_category(assumptions),
        'construction_year': parse_construction_year(assumptions.get('epl')),
        'geometry_data': dict(geometry['results']),
        'gmlid_list': _gmlids(building),
        'system_type': map_to_system_type(hvac.get('hvac_type')),
        'retrofit_subsystem_type': (selected_hvac or {}).get('hvac_type') or DEFAULT_SUBSYSTEM_TYPE,
        'co2_reduction_scenario': co2_reduction_scenario,
        'co2_cost_scenario': co2_cost_scenario
    }


class RetrofitAnalysisService(ServiceClient):
    service_name = 'retrofit-analysis'

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or config.ANALYSIS_API_URL, **kwargs)

    def analyze_retrofit(self, payload: Dict) -> Dict:
        logger.info(f"Sending analysis payload for building {payload.get('building_id')}")
        return self._json('POST', '/api/energy/analyze-retrofit', json=payload,
                          headers={'Content-Type': 'application/json'})

    def analyze_base_scenario(self, building: Dict, geometry: Dict,
                              co2_path_scenarios: List[str], co2_cost_scenarios: List[str],
                              selected_co2_path: str, selected_co2_cost: str) -> Optional[Dict]:
        """Status-quo analysis; skipped (None) until the CO2 scenario lists are known"""
        if not co2_path_scenarios or not co2_cost_scenarios:
            logger.info('CO2 scenarios not loaded yet, skipping base scenario analysis')
            return None
        payload = build_base_scenario_payload(building, geometry, selected_co2_path, selected_co2_cost)
        return self.analyze_retrofit(payload)

    def analyze_with_constructions(self, building: Dict, geometry: Dict, selections: Dict,
                                   selected_co2_path: str, selected_co2_cost: str,
                                   retrofit_scenario: Optional[Dict] = None) -> Dict:
        payload = build_construction_payload(building, geometry, selections, selected_co2_path,
                                             selected_co2_cost, retrofit_scenario)
        return self.analyze_retrofit(payload)

    def analyze_retrofit_scenario(self, building: Dict, geometry: Dict, retrofit_scenario: Optional[Dict],
                                  selected_co2_path: str, selected_co2_cost: str,
                                  hvac_options: Optional[List[Dict]] = None) -> Dict:
        payload = build_retrofit_scenario_payload(building, geometry, retrofit_scenario, selected_co2_path,
                                                  selected_co2_cost, hvac_options)
        return self.analyze_retrofit(payload)
