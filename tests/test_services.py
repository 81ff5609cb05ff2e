"""Tests for the REST clients: error formatting, geometry, map data and the construction catalog"""
import json
from unittest import mock

import pytest
import requests

from conftest import make_response
from urbanai.api_client import format_error_detail
from urbanai.citygml_service import CityGMLService, MapDataService, surface_areas
from urbanai.construction_service import (
    CONSTRUCTION_TYPES, DEFAULT_SELECTIONS, ConstructionCatalogService, ConstructionSelections
)
from urbanai.errors import APIError, AuthenticationRequired

FEATURE_COLLECTION = {
    'type': 'FeatureCollection',
    'features': [{'type': 'Feature', 'geometry': None, 'properties': {'gebid': '80331 1'}}]
}


class TestErrorDetail:
    def test_message_wins(self):
        assert format_error_detail(make_response(400, {'message': 'bad', 'detail': 'other'})) == 'bad'

    def test_validation_errors_one_per_line(self):
        response = make_response(422, {'detail': [
            {'loc': ['body', 'gebplz'], 'msg': 'field required', 'type': 'value_error.missing'},
            {'loc': ['query', 'gmlids'], 'msg': 'too short', 'type': 'value_error'}
        ]})
        assert format_error_detail(response) == (
            'body.gebplz: field required (value_error.missing)\n'
            'query.gmlids: too short (value_error)'
        )

    def test_string_detail(self):
        assert format_error_detail(make_response(404, {'detail': 'Not found'})) == 'Not found'

    def test_other_bodies_are_dumped(self):
        assert format_error_detail(make_response(500, {'error': 'x'})) == '{"error": "x"}'

    def test_non_json_body(self):
        assert format_error_detail(make_response(502, text='<html>')) == 'HTTP error! status: 502'
        assert format_error_detail(make_response(500, {})) == 'HTTP error! status: 500'


class TestCityGML:
    def test_get_geometry_sends_ids_and_flag(self, logged_in, http):
        http.request.return_value = make_response(200, {'results': {}})
        service = CityGMLService(base_url='https://geo.test/', auth=logged_in)

        assert service.get_geometry([' DEBY_1 ', 'DEBY_2', ''], calculate_window_areas=True) == {'results': {}}

        method, url = http.request.call_args.args
        assert (method, url) == ('GET', 'https://geo.test/api/citygml/get_geometry')
        assert http.request.call_args.kwargs['params'] == {
            'gmlids': 'DEBY_1,DEBY_2', 'calculate_window_areas': 'true'
        }
        assert http.request.call_args.kwargs['headers']['Authorization'].startswith('Bearer ')

    def test_single_id_and_default_flag(self, logged_in, http):
        http.request.return_value = make_response(200, {})
        CityGMLService(base_url='https://geo.test', auth=logged_in).get_geometry('DEBY_1')
        assert http.request.call_args.kwargs['params']['calculate_window_areas'] == 'false'

    def test_empty_ids_rejected(self, logged_in):
        with pytest.raises(ValueError):
            CityGMLService(base_url='https://geo.test', auth=logged_in).get_geometry(['', '  '])

    def test_requires_login(self, auth):
        with pytest.raises(AuthenticationRequired):
            CityGMLService(base_url='https://geo.test', auth=auth).get_geometry('DEBY_1')

    def test_service_error(self, logged_in, http):
        http.request.return_value = make_response(404, {'detail': 'GML ID not found'})
        with pytest.raises(APIError) as exc:
            CityGMLService(base_url='https://geo.test', auth=logged_in).get_geometry('DEBY_X')
        assert exc.value.detail == 'GML ID not found'
        assert exc.value.status == 404

    def test_unreachable_service(self, logged_in, http):
        http.request.side_effect = requests.ConnectionError('refused')
        with pytest.raises(APIError, match='refused'):
            CityGMLService(base_url='https://geo.test', auth=logged_in).get_geometry('DEBY_1')

    def test_surface_areas(self, geometry_response):
        assert surface_areas(geometry_response) == [
            {'label': 'Grundfläche', 'value': 125.5, 'unit': 'm²'},
            {'label': 'Dachfläche', 'value': 130.0, 'unit': 'm²'}
        ]
        assert surface_areas({'summed_surface_areas': {'Fenster': 'n/a'}}) == []
        assert surface_areas(None) == []


class TestMapData:
    def test_fetch_is_cached(self, logged_in, http):
        http.request.return_value = make_response(200, FEATURE_COLLECTION)
        service = MapDataService(base_url='https://map.test', auth=logged_in)

        assert service.fetch_map_data() == FEATURE_COLLECTION
        assert service.fetch_map_data() == FEATURE_COLLECTION
        assert http.request.call_count == 1

        service.clear_map_data()
        service.fetch_map_data()
        assert http.request.call_count == 2

    def test_double_encoded_collection(self, logged_in, http):
        http.request.return_value = make_response(200, json.dumps(FEATURE_COLLECTION))
        service = MapDataService(base_url='https://map.test', auth=logged_in)
        assert service.fetch_map_data()['type'] == 'FeatureCollection'

    @pytest.mark.parametrize('body', [
        {'type': 'Feature'},
        {'type': 'FeatureCollection', 'features': 'nope'},
        json.dumps([1, 2, 3])
    ])
    def test_invalid_geojson(self, logged_in, http, body):
        http.request.return_value = make_response(200, body)
        with pytest.raises(APIError, match='Invalid GeoJSON data received'):
            MapDataService(base_url='https://map.test', auth=logged_in).fetch_map_data()


class TestConstructionCatalog:
    def _service(self, http, **kwargs):
        return ConstructionCatalogService(base_url='https://analysis.test', session=http, **kwargs)

    def test_fetch_list(self, http):
        http.request.return_value = make_response(200, {'constructions': [{'construction_number': 'W-1'}]})
        service = self._service(http)

        assert service.fetch_construction_list('Fenster') == [{'construction_number': 'W-1'}]
        method, url = http.request.call_args.args
        assert url == 'https://analysis.test/api/construction-hvac/construction/list'
        assert http.request.call_args.kwargs['params'] == {'construction_type': 'Fenster'}

    def test_list_is_cached_until_ttl(self, http):
        http.request.return_value = make_response(200, {'constructions': []})
        service = self._service(http, cache_ttl=60)

        with mock.patch('urbanai.construction_service.time.time', return_value=1000.0):
            service.fetch_construction_list('Dach')
            service.fetch_construction_list('Dach')
        assert http.request.call_count == 1

        with mock.patch('urbanai.construction_service.time.time', return_value=1061.0):
            service.fetch_construction_list('Dach')
        assert http.request.call_count == 2

    def test_failing_type_yields_empty_list(self, http):
        def respond(method, url, **kwargs):
            if kwargs['params']['construction_type'] == 'Dach':
                return make_response(500, {'detail': 'db down'})
            return make_response(200, {'constructions': [{'construction_number': 'X'}]})
        http.request.side_effect = respond

        catalog = self._service(http).fetch_all_construction_types()

        assert list(catalog) == CONSTRUCTION_TYPES
        assert catalog['Dach'] == []
        assert catalog['Fenster'] == [{'construction_number': 'X'}]

    def test_options_come_from_cache_only(self, http):
        http.request.return_value = make_response(200, {'constructions': [{'construction_number': 'B-1'}]})
        service = self._service(http)
        assert service.get_construction_options('Boden') == []
        service.fetch_construction_list('Boden')
        assert service.get_construction_options('Boden') == [{'construction_number': 'B-1'}]


class TestConstructionSelections:
    def test_defaults(self):
        assert ConstructionSelections().to_dict() == DEFAULT_SELECTIONS

    def test_update_by_component_name(self):
        selections = ConstructionSelections()
        assert selections.update_selection('Außenwand', 'F-330-009') is True
        assert selections['wall_construction'] == 'F-330-009'

    def test_unknown_component_is_ignored(self):
        selections = ConstructionSelections()
        assert selections.update_selection('Keller', 'K-1') is False
        assert selections.to_dict() == DEFAULT_SELECTIONS

    def test_overrides_and_reset(self):
        selections = ConstructionSelections(dynamic_lca=True, roof_construction='R-1')
        assert selections.get('dynamic_lca') is True
        selections.reset()
        assert selections.to_dict() == DEFAULT_SELECTIONS

    def test_unknown_override(self):
        with pytest.raises(ValueError):
            ConstructionSelections(cellar_construction='K-1')
