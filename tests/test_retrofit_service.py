"""Tests for the analysis request builders and the analysis client"""
from datetime import datetime

import pytest

from conftest import make_response
from urbanai.construction_service import DEFAULT_SELECTIONS
from urbanai.errors import PayloadError
from urbanai.retrofit_service import (
    RetrofitAnalysisService, build_base_scenario_payload, build_construction_payload,
    build_retrofit_scenario_payload, get_building_category, map_to_system_type,
    parse_construction_year
)

GEOMETRY = {'results': {'DEBY_LOD2_4909255': {'surfaces_adiabatic': {}}}}


@pytest.mark.parametrize('value, expected', [
    (None, '1950'),
    ('', '1950'),
    ('1965', '1965'),
    (1972, '1972'),
    ('1980-1990', '1980-1990'),
    ('1899', '1950'),
    (str(datetime.now().year + 1), '1950'),
    ('unbekannt', '1950'),
])
def test_parse_construction_year(value, expected):
    assert parse_construction_year(value) == expected


def test_building_category_default():
    assert get_building_category({'enob_category': 'Schule'}) == 'Schule'
    assert get_building_category({}) == 'Wohngebäude'
    assert get_building_category(None) == 'Wohngebäude'


def test_system_type_mapping():
    assert map_to_system_type('Wärmepumpe') == 'Wärmepumpe'
    assert map_to_system_type('Kohle') == 'Öl/Gas'
    assert map_to_system_type(None) == 'Öl/Gas'


class TestBaseScenario:
    def test_payload(self, building):
        payload = build_base_scenario_payload(building, GEOMETRY, 'KSG', 'UBA')
        assert payload == {
            'building_id': 'B-1',
            'gebplz': '80331',
            'building_category': 'Bürogebäude',
            'construction_year': '1972',
            'geometry_data': GEOMETRY['results'],
            'gmlid_list': ['DEBY_LOD2_4909255', 'DEBY_LOD2_4909256'],
            'system_type': 'Fernwärme',
            'retrofit_subsystem_type': 'Gas',
            'co2_reduction_scenario': 'KSG',
            'co2_cost_scenario': 'UBA'
        }

    def test_requires_geometry_results(self, building):
        with pytest.raises(PayloadError):
            build_base_scenario_payload(building, {}, 'KSG', 'UBA')


class TestConstructionPayload:
    def test_payload_without_retrofit(self, building):
        payload = build_construction_payload(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')

        assert payload['building_id'] == '80331 12345'
        assert payload['gebplz'] == '80331'
        assert payload['construction_year'] == '1965'
        assert payload['system_type'] == 'Öl/Gas'
        assert payload['retrofit_subsystem_type'] == 'Gas'
        assert payload['window_construction'] == 'W-330-001'
        assert payload['base_construction'] == 'B-360-001'
        assert payload['dynamic_lca'] is False
        assert payload['time_preference_rate'] == 0.03
        assert payload['geometry_data'] == GEOMETRY['results']
        assert 'retrofit_scenario_construction' not in payload
        assert 'retrofit_hvac_year' not in payload

    def test_postcode_falls_back_to_gebid(self, building):
        del building['buildings_assumptions']['gebplz']
        payload = build_construction_payload(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')
        assert payload['gebplz'] == '80331'

    def test_short_postcode_rejected(self, building):
        building['buildings_assumptions']['gebplz'] = '803'
        with pytest.raises(PayloadError, match='Ungültige Postleitzahl: 803'):
            build_construction_payload(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')

    def test_missing_data(self, building):
        with pytest.raises(PayloadError, match='Fehlende Gebäudedaten'):
            build_construction_payload(None, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')
        with pytest.raises(PayloadError, match='buildings_assumptions'):
            build_construction_payload({'gmlid_gebid_mapping': []}, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')
        del building['buildings_assumptions']['gebid']
        with pytest.raises(PayloadError, match='GEBID'):
            build_construction_payload(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA')

    def test_retrofit_fields(self, building):
        scenario = {
            'energy_standard': {'id': 'KfW-55'},
            'construction_year': '2030',
            'hvac': {'hvac_type': 'Wärmepumpe', 'hvac_number': 'H-2'},
            'hvac_year': 2028
        }
        selections = dict(DEFAULT_SELECTIONS, dynamic_lca=True)

        payload = build_construction_payload(building, GEOMETRY, selections, 'KSG', 'UBA', scenario)

        assert payload['system_type'] == 'Wärmepumpe'
        assert payload['retrofit_subsystem_type'] == 'Wärmepumpe'
        assert payload['retrofit_scenario_construction'] == 'KfW-55'
        assert payload['retrofit_construction_year'] == 2030
        assert payload['retrofit_system_type'] == 'Wärmepumpe'
        assert payload['retrofit_hvac_year'] == 2028
        assert payload['dynamic_lca'] is True

    def test_invalid_retrofit_year(self, building):
        scenario = {'energy_standard': {'id': 'KfW-55'}, 'construction_year': 'bald'}
        with pytest.raises(PayloadError):
            build_construction_payload(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA', scenario)


class TestRetrofitScenario:
    def test_subsystem_from_matching_hvac_option(self, building):
        scenario = {'hvac': {'hvac_type': 'Wärmepumpe', 'hvac_number': 'H-2'}}
        options = [
            {'hvac_number': 'H-1', 'hvac_type': 'Luft'},
            {'hvac_number': 'H-2', 'hvac_type': 'Sole'}
        ]

        payload = build_retrofit_scenario_payload(building, GEOMETRY, scenario, 'KSG', 'UBA', options)

        assert payload['building_id'] == '80331 12345'
        assert payload['gebplz'] == '80331'
        assert payload['system_type'] == 'Wärmepumpe'
        assert payload['retrofit_subsystem_type'] == 'Sole'

    def test_status_quo_defaults(self, building):
        payload = build_retrofit_scenario_payload(building, GEOMETRY, None, 'KSG', 'UBA')
        assert payload['system_type'] == 'Öl/Gas'
        assert payload['retrofit_subsystem_type'] == 'Gas'


class TestAnalysisService:
    def test_posts_payload(self, http, building):
        http.request.return_value = make_response(200, {'baseline': {}})
        service = RetrofitAnalysisService(base_url='https://analysis.test', session=http)

        assert service.analyze_with_constructions(building, GEOMETRY, DEFAULT_SELECTIONS, 'KSG', 'UBA') == {
            'baseline': {}
        }
        method, url = http.request.call_args.args
        assert (method, url) == ('POST', 'https://analysis.test/api/energy/analyze-retrofit')
        assert http.request.call_args.kwargs['json']['building_id'] == '80331 12345'

    def test_base_scenario_waits_for_co2_scenarios(self, http, building):
        service = RetrofitAnalysisService(base_url='https://analysis.test', session=http)
        assert service.analyze_base_scenario(building, GEOMETRY, [], ['UBA'], 'KSG', 'UBA') is None
        http.request.assert_not_called()

    def test_base_scenario(self, http, building):
        http.request.return_value = make_response(200, {'ok': True})
        service = RetrofitAnalysisService(base_url='https://analysis.test', session=http)
        assert service.analyze_base_scenario(building, GEOMETRY, ['KSG'], ['UBA'], 'KSG', 'UBA') == {'ok': True}
        assert http.request.call_args.kwargs['json']['system_type'] == 'Fernwärme'
