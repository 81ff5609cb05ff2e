"""
Energy metric cards (energy demand, emissions, operating costs, stranding)
reshaped from the ``frontend_data.cards`` block of an analysis result.
"""
import math
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CARD_SPECS = {
    'energy': {
        'card': 'energiebedarf',
        'options_key': 'energy_types',
        'unit_keys': {'total': 'total_kwh', 'per_sqm': 'per_sqm_kwh'},
        'unit_labels': {'total': 'kWh', 'per_sqm': 'kWh/m²'},
        'default_types': [
            {'key': 'net', 'label': 'Netto-Energie'},
            {'key': 'end', 'label': 'End-Energie'},
            {'key': 'primary', 'label': 'Primär-Energie'}
        ],
        'default_units': [
            {'key': 'total', 'label': 'Gesamt (kWh)'},
            {'key': 'per_sqm', 'label': 'Pro m² (kWh/m²)'}
        ]
    },
    'emission': {
        'card': 'emissionen',
        'options_key': 'emission_types',
        'unit_keys': {'total': 'total_kg_co2', 'per_sqm': 'per_sqm_kg_co2'},
        'unit_labels': {'total': 'kg CO₂', 'per_sqm': 'kg CO₂/m²'},
        'default_types': [
            {'key': 'scope_1', 'label': 'Scope 1'},
            {'key': 'scope_2', 'label': 'Scope 2'},
            {'key': 'scope_3', 'label': 'Scope 3'},
            {'key': 'total', 'label': 'Gesamt'}
        ],
        'default_units': [
            {'key': 'total', 'label': 'Gesamt (kg CO₂)'},
            {'key': 'per_sqm', 'label': 'Pro m² (kg CO₂/m²)'}
        ]
    },
    'cost': {
        'card': 'betriebskosten',
        'options_key': 'cost_types',
        'unit_keys': {'total': 'total_eur', 'per_sqm': 'per_sqm_eur'},
        'unit_labels': {'total': 'EUR', 'per_sqm': 'EUR/m²'},
        'default_types': [
            {'key': 'energy_costs', 'label': 'Energiekosten'},
            {'key': 'co2_costs', 'label': 'CO₂-Kosten'},
            {'key': 'total_costs', 'label': 'Gesamtkosten'}
        ],
        'default_units': [
            {'key': 'total', 'label': 'Gesamt (EUR)'},
            {'key': 'per_sqm', 'label': 'Pro m² (EUR/m²)'}
        ]
    }
}

DEFAULT_SELECTIONS = {
    'energy_type': 'primary',
    'energy_unit': 'total',
    'emission_type': 'total',
    'emission_unit': 'total',
    'cost_type': 'energy_costs',
    'cost_unit': 'total'
}


def format_number(value, decimals: int = 0) -> str:
    """Number in German notation, e.g. 1234.5 -> '1.234,5'"""
    if value is None:
        return '0'
    try:
        value = float(value)
    except (TypeError, ValueError):
        return '0'
    if math.isnan(value):
        return '0'
    text = f"{value:,.{decimals}f}"
    return text.replace(',', '_').replace('.', ',').replace('_', '.')


def improvement_color_class(improvement: float) -> str:
    # an increase is bad, a decrease is good
    if improvement > 0:
        return 'text-red-600'
    if improvement < 0:
        return 'text-green-600'
    return 'text-gray-600'


def risk_color_class(risk_level: str) -> str:
    return {
        'low': 'text-green-600',
        'medium': 'text-yellow-600',
        'high': 'text-red-600'
    }.get(risk_level, 'text-gray-600')


def _cards(result: Optional[Dict]) -> Dict:
    return ((result or {}).get('frontend_data') or {}).get('cards') or {}


class MetricsCards:
    """Card data for an analysis result under the current type/unit selections.

    A selected type missing from the result falls back to the first type the
    result offers, and the selection is updated accordingly.
    """

    def __init__(self, **selections):
        self.selections = dict(DEFAULT_SELECTIONS)
        for key, value in selections.items():
            if key not in self.selections:
                raise ValueError(f"Unknown card selection: {key}")
            if value:
                self.selections[key] = value

    def _value_card(self, result: Optional[Dict], kind: str) -> Optional[Dict]:
        spec = CARD_SPECS[kind]
        card = _cards(result).get(spec['card'])
        if not card:
            logger.debug(f"No frontend_data.cards.{spec['card']} in analysis result")
            return None

        data = card.get('data') or {}
        baseline_types = data.get('baseline') or {}
        available = list(baseline_types.keys())
        if not available:
            return None

        type_key = f"{kind}_type"
        if self.selections[type_key] not in available:
            logger.info(f"Auto-selecting first available {kind} type: {available[0]}")
            self.selections[type_key] = available[0]
        selected_type = self.selections[type_key]

        unit = 'total' if self.selections[f"{kind}_unit"] == 'total' else 'per_sqm'
        unit_key = spec['unit_keys'][unit]
        unit_label = spec['unit_labels'][unit]

        baseline = {
            'value': (baseline_types.get(selected_type) or {}).get(unit_key) or 0,
            'unit': unit_label
        }

        improvements = data.get('improvements') or {}
        scenarios = []
        for name, scenario_data in (data.get('retrofits') or {}).items():
            type_data = (scenario_data or {}).get(selected_type)
            if not type_data:
                continue
            improvement = ((improvements.get(name) or {}).get(selected_type) or {}).get('improvement_percent') or 0
            scenarios.append({
                'name': name,
                'value': type_data.get(unit_key) or 0,
                # reported as a reduction, shown as a change
                'improvement': -improvement,
                'unit': unit_label
            })

        display_options = card.get('display_options') or {}
        return {
            'baseline': baseline,
            'scenarios': scenarios,
            'options': {
                spec['options_key']: display_options.get(spec['options_key']) or spec['default_types'],
                'units': display_options.get('units') or spec['default_units']
            }
        }

    def energy_card(self, result: Optional[Dict]) -> Optional[Dict]:
        return self._value_card(result, 'energy')

    def emission_card(self, result: Optional[Dict]) -> Optional[Dict]:
        return self._value_card(result, 'emission')

    def cost_card(self, result: Optional[Dict]) -> Optional[Dict]:
        return self._value_card(result, 'cost')

    def stranding_card(self, result: Optional[Dict]) -> Optional[Dict]:
        card = _cards(result).get('stranding')
        if not card:
            return None
        data = card.get('data') or {}
        baseline = data.get('baseline') or {}
        return {
            'baseline': {
                'value': baseline.get('years_to_stranding') or 0,
                'unit': 'Jahre',
                'status': baseline.get('compliance_status') or 'Unbekannt',
                'riskLevel': baseline.get('risk_level') or 'medium'
            },
            'scenarios': [{
                'name': name,
                'value': (scenario or {}).get('years_to_stranding') or 0,
                'improvement': (scenario or {}).get('improvement_years') or 0,
                'unit': 'Jahre'
            } for name, scenario in (data.get('retrofits') or {}).items()]
        }

    def all_cards(self, result: Optional[Dict]) -> Dict[str, Optional[Dict]]:
        return {
            'energy': self.energy_card(result),
            'emission': self.emission_card(result),
            'stranding': self.stranding_card(result),
            'cost': self.cost_card(result),
            'selections': dict(self.selections)
        }


def scenario_chart_data(card: Optional[Dict]) -> Optional[Dict]:
    """Bar chart labels/datasets (baseline first) for a value card"""
    if not card:
        return None
    labels: List[str] = ['Status quo'] + [s['name'] for s in card.get('scenarios', [])]
    values = [card['baseline']['value']] + [s['value'] for s in card.get('scenarios', [])]
    return {
        'labels': labels,
        'datasets': [{'label': card['baseline']['unit'], 'data': values}]
    }
