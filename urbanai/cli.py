#!/usr/bin/env python3
"""
Urban AI CLI - log in, fetch building geometry, list constructions and run analyses

Usage:
  urbanai login --username <USER>
  urbanai geometry DEBY_LOD2_4909255 --scene -o scene.json
  urbanai analyze constructions --building building.json --geometry geometry.json
  urbanai serve --port 5002
"""

import argparse
import getpass
import json
import logging
import sys

from urbanai import config
from urbanai.auth import AuthSession
from urbanai.citygml_service import CityGMLService, surface_areas
from urbanai.construction_service import ConstructionCatalogService, ConstructionSelections
from urbanai.errors import UrbanAIError
from urbanai.metrics import MetricsCards, format_number
from urbanai.retrofit_service import RetrofitAnalysisService
from urbanai.scene import build_scene
from urbanai.session_store import SessionStore

logger = logging.getLogger(__name__)


def _load_json(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _output(data, path=None):
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if path:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        print(f"Wrote {path}")
    else:
        print(text)


def _session(args) -> AuthSession:
    auth = AuthSession(SessionStore(profile=args.profile))
    auth.initialize_auth()
    return auth


def cmd_login(args):
    auth = _session(args)
    password = args.password or getpass.getpass('Password: ')
    user = auth.login(args.username, password)
    print(f"Logged in as {user.get('name') or user.get('username')}")
    return 0


def cmd_logout(args):
    _session(args).logout()
    print('Logged out')
    return 0


def cmd_status(args):
    _output(_session(args).status())
    return 0


def cmd_set_token(args):
    user = _session(args).set_token(args.token)
    print(f"Token stored for {user.get('name')}")
    return 0


def cmd_geometry(args):
    auth = _session(args)
    geometry = CityGMLService(auth=auth).get_geometry(args.gmlids, calculate_window_areas=args.window_areas)
    if args.scene:
        _output(build_scene(geometry, args.property), args.output)
        return 0
    if args.output:
        _output(geometry, args.output)
    else:
        for surface in surface_areas(geometry):
            print(f"{surface['label']}: {format_number(surface['value'], 1)} {surface['unit']}")
    return 0


def cmd_constructions(args):
    service = ConstructionCatalogService(auth=_session(args))
    if args.type:
        _output(service.fetch_construction_list(args.type))
    else:
        _output({'catalog': service.fetch_all_construction_types(),
                 'defaults': ConstructionSelections().to_dict()})
    return 0


def cmd_analyze(args):
    service = RetrofitAnalysisService(auth=_session(args))
    building = _load_json(args.building)
    geometry = _load_json(args.geometry)
    scenario = _load_json(args.scenario) if args.scenario else None

    if args.kind == 'base':
        result = service.analyze_base_scenario(building, geometry, [args.co2_path], [args.co2_cost],
                                               args.co2_path, args.co2_cost)
    elif args.kind == 'constructions':
        selections = ConstructionSelections(dynamic_lca=args.dynamic_lca)
        for item in args.construction or []:
            component, _, number = item.partition('=')
            selections.update_selection(component, number)
        result = service.analyze_with_constructions(building, geometry, selections.to_dict(),
                                                    args.co2_path, args.co2_cost, scenario)
    else:
        hvac_options = _load_json(args.hvac_options) if args.hvac_options else []
        result = service.analyze_retrofit_scenario(building, geometry, scenario, args.co2_path,
                                                   args.co2_cost, hvac_options)

    _output({'result': result, 'cards': MetricsCards().all_cards(result)}, args.output)
    return 0


def cmd_cards(args):
    result = _load_json(args.result)
    cards = MetricsCards(energy_unit=args.unit, emission_unit=args.unit, cost_unit=args.unit)
    _output(cards.all_cards(result))
    return 0


def cmd_serve(args):
    from urbanai.app import run
    run(host=args.host, port=args.port, debug=args.debug)
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog='urbanai', description='Urban AI building-energy analysis client')
    p.add_argument('--profile', default='default', help='Session profile name')
    p.add_argument('--log-level', default=None, help='Logging level (default from LOG_LEVEL)')
    sub = p.add_subparsers(dest='command', required=True)

    s = sub.add_parser('login', help='Log in and store the session')
    s.add_argument('--username', required=True)
    s.add_argument('--password', help='Prompted for when omitted')
    s.set_defaults(func=cmd_login)

    s = sub.add_parser('logout', help='Log out and clear the stored session')
    s.set_defaults(func=cmd_logout)

    s = sub.add_parser('status', help='Show authentication status')
    s.set_defaults(func=cmd_status)

    s = sub.add_parser('set-token', help='Store a bearer token obtained elsewhere')
    s.add_argument('token')
    s.set_defaults(func=cmd_set_token)

    s = sub.add_parser('geometry', help='Fetch building geometry by GML ID')
    s.add_argument('gmlids', nargs='+')
    s.add_argument('--window-areas', action='store_true', help='Ask the service to calculate window areas')
    s.add_argument('--scene', action='store_true', help='Output ArcGIS scene layers instead of raw geometry')
    s.add_argument('--property', help='Colour adiabatic surfaces by this property')
    s.add_argument('-o', '--output', help='Write JSON to this file')
    s.set_defaults(func=cmd_geometry)

    s = sub.add_parser('constructions', help='List catalog constructions')
    s.add_argument('--type', help='Fenster, Außenwand, Dach or Boden (default: all)')
    s.set_defaults(func=cmd_constructions)

    s = sub.add_parser('analyze', help='Run a retrofit analysis')
    s.add_argument('kind', choices=['base', 'constructions', 'retrofit'])
    s.add_argument('--building', required=True, help='Building data JSON file')
    s.add_argument('--geometry', required=True, help='Geometry response JSON file')
    s.add_argument('--scenario', help='Retrofit scenario JSON file')
    s.add_argument('--hvac-options', help='HVAC options JSON file')
    s.add_argument('--co2-path', required=True, help='CO2 reduction scenario')
    s.add_argument('--co2-cost', required=True, help='CO2 cost scenario')
    s.add_argument('--construction', action='append', metavar='COMPONENT=NUMBER',
                   help='Construction choice, e.g. Fenster=W-330-002 (repeatable)')
    s.add_argument('--dynamic-lca', action='store_true')
    s.add_argument('-o', '--output', help='Write JSON to this file')
    s.set_defaults(func=cmd_analyze)

    s = sub.add_parser('cards', help='Metric cards for a saved analysis result')
    s.add_argument('result', help='Analysis result JSON file')
    s.add_argument('--unit', choices=['total', 'per_sqm'], default='total')
    s.set_defaults(func=cmd_cards)

    s = sub.add_parser('serve', help='Run the HTTP backend')
    s.add_argument('--host', default=None)
    s.add_argument('--port', type=int, default=None)
    s.add_argument('--debug', action='store_true')
    s.set_defaults(func=cmd_serve)

    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    config.configure_logging(args.log_level)
    try:
        return args.func(args)
    except UrbanAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
