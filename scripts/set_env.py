#!/usr/bin/env python3
"""CLI helper to configure the app.

Usage:
  python3 scripts/set_env.py --arcgis <KEY> --api-url https://api.decotwo.com

The ArcGIS key goes to the OS keyring when available, otherwise to .env.
Service URLs are always written to .env.
"""
import argparse
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
ENV_PATH = ROOT / '.env'
KEYRING_SERVICE = 'urbanai_app'


def set_in_env(kv, env_path=ENV_PATH):
    """Update KEY=value lines of a .env file in place; comments and unrelated lines are kept."""
    lines = []
    if env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()

    pending = dict(kv)
    updated = []
    for line in lines:
        key = line.split('=', 1)[0].strip()
        if '=' in line and not line.lstrip().startswith('#') and key in pending:
            updated.append(f"{key}={pending.pop(key)}")
        else:
            updated.append(line)
    updated.extend(f"{k}={v}" for k, v in pending.items())

    with open(env_path, 'w', encoding='utf-8') as f:
        f.write('\n'.join(updated) + '\n')


def main():
    p = argparse.ArgumentParser()
    p.add_argument('--arcgis', help='ArcGIS API key')
    p.add_argument('--api-url', help='Auth and geometry service base URL')
    p.add_argument('--analysis-url', help='Analysis and construction catalog base URL')
    p.add_argument('--map-url', help='Map data service base URL')
    args = p.parse_args()

    use_keyring = False
    try:
        import keyring
        from keyring.errors import KeyringError
        use_keyring = True
    except ImportError:
        use_keyring = False

    kv = {}
    if args.arcgis:
        if use_keyring:
            try:
                keyring.set_password(KEYRING_SERVICE, 'ARCGIS_API_KEY', args.arcgis)
                kv['ARCGIS_API_KEY'] = '<stored-in-keyring>'
            except KeyringError:
                kv['ARCGIS_API_KEY'] = args.arcgis
        else:
            kv['ARCGIS_API_KEY'] = args.arcgis
    if args.api_url:
        kv['URBANAI_API_URL'] = args.api_url
    if args.analysis_url:
        kv['URBANAI_ANALYSIS_API_URL'] = args.analysis_url
    if args.map_url:
        kv['URBANAI_MAP_API_URL'] = args.map_url

    if kv:
        set_in_env(kv)
        print('Updated .env (or stored in keyring).')
    else:
        print('Nothing to update.')


if __name__ == '__main__':
    main()
