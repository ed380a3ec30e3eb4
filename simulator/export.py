"""JSON scenario export/import, share links and CSV export."""

import base64
import binascii
import json
import uuid
import zlib
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import (
    AmortizationMonth,
    ConstructionRepaymentType,
    CustomRate,
    DrawdownStage,
    MortgageInput,
    OverpaymentConfig,
    OverpaymentEffect,
    OverpaymentFrequency,
    OverpaymentType,
    RatePeriodConfig,
    SelfBuildConfig,
    SelfBuildPhase,
    SimulationState,
)
from .rates import rate_from_dict, rate_to_dict
from .summary import schedule_to_dataframe

SCENARIO_VERSION = '1.0'

EXAMPLES_DIR = Path(__file__).parent.parent / 'data' / 'examples'

# Columns in the CSV export, with amounts in euros
CSV_MONEY_COLUMNS = [
    'opening_balance', 'closing_balance', 'scheduled_payment', 'interest_portion',
    'principal_portion', 'overpayment', 'total_payment', 'cumulative_interest',
    'cumulative_principal', 'cumulative_overpayments', 'cumulative_total',
]


def _new_id() -> str:
    return str(uuid.uuid4())


def input_to_dict(inp: MortgageInput) -> dict:
    """Convert MortgageInput to serializable dictionary."""
    return {
        'mortgage_amount': inp.mortgage_amount,
        'mortgage_term_months': inp.mortgage_term_months,
        'property_value': inp.property_value,
        'ber': inp.ber,
        'start_date': inp.start_date.isoformat() if inp.start_date else None,
    }


def dict_to_input(data: dict) -> MortgageInput:
    """Convert dictionary to MortgageInput."""
    start_date = data.get('start_date')
    return MortgageInput(
        mortgage_amount=data['mortgage_amount'],
        mortgage_term_months=data['mortgage_term_months'],
        property_value=data.get('property_value', 0),
        ber=data.get('ber'),
        start_date=date.fromisoformat(start_date) if start_date else None,
    )


def rate_period_to_dict(period: RatePeriodConfig) -> dict:
    return {
        'id': period.id,
        'lender_id': period.lender_id,
        'rate_id': period.rate_id,
        'is_custom': period.is_custom,
        'duration_months': period.duration_months,
        'label': period.label,
    }


def dict_to_rate_period(data: dict) -> RatePeriodConfig:
    return RatePeriodConfig(
        id=data['id'],
        lender_id=data['lender_id'],
        rate_id=data['rate_id'],
        is_custom=data.get('is_custom', False),
        duration_months=data.get('duration_months', 0),
        label=data.get('label'),
    )


def overpayment_to_dict(config: OverpaymentConfig) -> dict:
    return {
        'id': config.id,
        'rate_period_id': config.rate_period_id,
        'type': config.type.value,
        'amount': config.amount,
        'start_month': config.start_month,
        'effect': config.effect.value,
        'frequency': config.frequency.value if config.frequency else None,
        'end_month': config.end_month,
        'enabled': config.enabled,
        'label': config.label,
    }


def dict_to_overpayment(data: dict) -> OverpaymentConfig:
    frequency = data.get('frequency')
    return OverpaymentConfig(
        id=data['id'],
        rate_period_id=data['rate_period_id'],
        type=OverpaymentType(data['type']),
        amount=data['amount'],
        start_month=data['start_month'],
        effect=OverpaymentEffect(data.get('effect', 'reduce_term')),
        frequency=OverpaymentFrequency(frequency) if frequency else None,
        end_month=data.get('end_month'),
        enabled=data.get('enabled', True),
        label=data.get('label'),
    )


def self_build_to_dict(config: SelfBuildConfig) -> dict:
    return {
        'enabled': config.enabled,
        'construction_repayment_type': config.construction_repayment_type.value,
        'interest_only_months': config.interest_only_months,
        'drawdown_stages': [
            {'id': s.id, 'month': s.month, 'amount': s.amount, 'label': s.label}
            for s in config.drawdown_stages
        ],
    }


def dict_to_self_build(data: dict) -> SelfBuildConfig:
    return SelfBuildConfig(
        enabled=data.get('enabled', True),
        construction_repayment_type=ConstructionRepaymentType(
            data.get('construction_repayment_type', 'interest_only')
        ),
        interest_only_months=data.get('interest_only_months', 0),
        drawdown_stages=[
            DrawdownStage(id=s['id'], month=s['month'], amount=s['amount'], label=s.get('label'))
            for s in data.get('drawdown_stages', [])
        ],
    )


def state_to_dict(state: SimulationState) -> dict:
    """Convert the minimal simulation input state to a serializable dictionary.

    Derived outputs are never stored; they are recomputed on load.
    """
    return {
        'input': input_to_dict(state.input),
        'rate_periods': [rate_period_to_dict(p) for p in state.rate_periods],
        'overpayment_configs': [overpayment_to_dict(c) for c in state.overpayment_configs],
        'self_build': self_build_to_dict(state.self_build) if state.self_build else None,
    }


def dict_to_state(data: dict) -> SimulationState:
    """Convert dictionary to SimulationState."""
    self_build = data.get('self_build')
    return SimulationState(
        input=dict_to_input(data['input']),
        rate_periods=[dict_to_rate_period(p) for p in data.get('rate_periods', [])],
        overpayment_configs=[dict_to_overpayment(c) for c in data.get('overpayment_configs', [])],
        self_build=dict_to_self_build(self_build) if self_build else None,
    )


@dataclass
class Scenario:
    """Complete scenario for saving/loading."""

    name: str
    description: str
    state: SimulationState
    custom_rates: List[CustomRate] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now().isoformat()
        if self.updated_at is None:
            self.updated_at = self.created_at


def scenario_to_dict(scenario: Scenario) -> dict:
    """Convert Scenario to the JSON file layout."""
    return {
        'name': scenario.name,
        'description': scenario.description,
        'state': state_to_dict(scenario.state),
        'custom_rates': [rate_to_dict(r) for r in scenario.custom_rates],
        'created_at': scenario.created_at,
        'updated_at': datetime.now().isoformat(),
        'version': SCENARIO_VERSION,
    }


def scenario_from_dict(data: dict) -> Scenario:
    """Convert a scenario file's contents back to a Scenario."""
    return Scenario(
        name=data['name'],
        description=data.get('description', ''),
        state=dict_to_state(data['state']),
        custom_rates=[rate_from_dict(r, custom=True) for r in data.get('custom_rates', [])],
        created_at=data.get('created_at'),
        updated_at=data.get('updated_at'),
    )


def export_scenario(scenario: Scenario, filepath: str) -> None:
    """Export scenario to JSON file."""
    with open(filepath, 'w') as f:
        json.dump(scenario_to_dict(scenario), f, indent=2)


def import_scenario(filepath: str) -> Scenario:
    """Import scenario from JSON file."""
    with open(filepath, 'r') as f:
        data = json.load(f)

    return scenario_from_dict(data)


def list_example_scenarios(examples_dir: str = str(EXAMPLES_DIR)) -> List[str]:
    """List available example scenario files."""
    path = Path(examples_dir)
    if not path.exists():
        return []
    return sorted(f.stem for f in path.glob('*.json'))


def load_example_scenario(name: str, examples_dir: str = str(EXAMPLES_DIR)) -> Scenario:
    """Load an example scenario by name."""
    filepath = Path(examples_dir) / f"{name}.json"
    return import_scenario(str(filepath))


# Share links: abbreviated keys, no ids (regenerated on decode), and rate
# periods referenced by stack position.

_FREQUENCY_CODES = {OverpaymentFrequency.QUARTERLY: 'q', OverpaymentFrequency.YEARLY: 'y'}


def _compress_state(state: SimulationState, custom_rates: Sequence[CustomRate]) -> Dict[str, Any]:
    inp = state.input
    compressed: Dict[str, Any] = {
        'i': {
            'a': inp.mortgage_amount,
            't': inp.mortgage_term_months,
            'p': inp.property_value,
            'd': inp.start_date.isoformat() if inp.start_date else None,
            'b': inp.ber,
        },
        'r': [
            {'l': p.lender_id, 'r': p.rate_id, 'c': p.is_custom, 'd': p.duration_months, 'b': p.label}
            for p in state.rate_periods
        ],
    }

    period_index = {p.id: i for i, p in enumerate(state.rate_periods)}
    if state.overpayment_configs:
        overpayments = []
        for c in state.overpayment_configs:
            item = {
                'p': period_index.get(c.rate_period_id, 0),
                'y': 'o' if c.type == OverpaymentType.ONE_TIME else 'r',
                'a': c.amount,
                's': c.start_month,
                'f': 't' if c.effect == OverpaymentEffect.REDUCE_TERM else 'p',
            }
            if c.frequency in _FREQUENCY_CODES:
                item['q'] = _FREQUENCY_CODES[c.frequency]
            if c.end_month is not None:
                item['e'] = c.end_month
            if c.label:
                item['b'] = c.label
            if not c.enabled:
                item['n'] = True
            overpayments.append(item)
        compressed['o'] = overpayments

    used_custom_ids = {p.rate_id for p in state.rate_periods if p.is_custom}
    used_custom = [rate_to_dict(r) for r in custom_rates if r.id in used_custom_ids]
    if used_custom:
        compressed['cr'] = used_custom

    sb = state.self_build
    if sb is not None and sb.enabled:
        compressed['sb'] = {
            'i': sb.interest_only_months,
            's': [{'m': s.month, 'a': s.amount, 'b': s.label} for s in sb.drawdown_stages],
        }
        if sb.construction_repayment_type == ConstructionRepaymentType.INTEREST_AND_CAPITAL:
            compressed['sb']['t'] = 'c'

    return compressed


def _decompress_state(compressed: Dict[str, Any]) -> Tuple[SimulationState, List[CustomRate]]:
    i = compressed['i']
    rate_periods = [
        RatePeriodConfig(
            id=_new_id(),
            lender_id=p['l'],
            rate_id=p['r'],
            is_custom=p.get('c', False),
            duration_months=p.get('d', 0),
            label=p.get('b'),
        )
        for p in compressed['r']
    ]

    overpayments = []
    for o in compressed.get('o', []):
        index = o.get('p', 0)
        if 0 <= index < len(rate_periods):
            period_id = rate_periods[index].id
        else:
            period_id = rate_periods[0].id if rate_periods else ''

        is_recurring = o['y'] == 'r'
        frequency = None
        if is_recurring:
            frequency = {'q': OverpaymentFrequency.QUARTERLY, 'y': OverpaymentFrequency.YEARLY}.get(
                o.get('q'), OverpaymentFrequency.MONTHLY
            )

        overpayments.append(OverpaymentConfig(
            id=_new_id(),
            rate_period_id=period_id,
            type=OverpaymentType.RECURRING if is_recurring else OverpaymentType.ONE_TIME,
            amount=o['a'],
            start_month=o['s'],
            effect=OverpaymentEffect.REDUCE_TERM if o.get('f', 't') == 't' else OverpaymentEffect.REDUCE_PAYMENT,
            frequency=frequency,
            end_month=o.get('e'),
            enabled=not o.get('n', False),
            label=o.get('b'),
        ))

    self_build = None
    sb = compressed.get('sb')
    if sb:
        self_build = SelfBuildConfig(
            enabled=True,
            construction_repayment_type=(
                ConstructionRepaymentType.INTEREST_AND_CAPITAL if sb.get('t') == 'c'
                else ConstructionRepaymentType.INTEREST_ONLY
            ),
            interest_only_months=sb.get('i', 0),
            drawdown_stages=[
                DrawdownStage(id=_new_id(), month=s['m'], amount=s['a'], label=s.get('b'))
                for s in sb.get('s', [])
            ],
        )

    state = SimulationState(
        input=MortgageInput(
            mortgage_amount=i['a'],
            mortgage_term_months=i['t'],
            property_value=i.get('p', 0),
            ber=i.get('b'),
            start_date=date.fromisoformat(i['d']) if i.get('d') else None,
        ),
        rate_periods=rate_periods,
        overpayment_configs=overpayments,
        self_build=self_build,
    )
    custom_rates = [rate_from_dict(r, custom=True) for r in compressed.get('cr', [])]
    return state, custom_rates


def encode_share_state(state: SimulationState, custom_rates: Sequence[CustomRate] = ()) -> str:
    """Encode the input state as a compact URL-safe string.

    Custom rates referenced by the rate periods are embedded so a shared
    link works for someone who does not have them.
    """
    payload = json.dumps(_compress_state(state, custom_rates), separators=(',', ':'))
    return base64.urlsafe_b64encode(zlib.compress(payload.encode('utf-8'))).decode('ascii')


def decode_share_state(encoded: str) -> Tuple[SimulationState, List[CustomRate]]:
    """Decode a share string back into a state and its embedded custom rates.

    Ids are regenerated; overpayments are re-linked to their rate periods by
    position.

    Raises:
        ValueError: If the string is not a valid share payload
    """
    try:
        raw = zlib.decompress(base64.urlsafe_b64decode(encoded.encode('ascii')))
        compressed = json.loads(raw.decode('utf-8'))
        return _decompress_state(compressed)
    except (binascii.Error, zlib.error, UnicodeError, json.JSONDecodeError,
            KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid share payload: {e}") from e


def export_schedule_csv(months: Sequence[AmortizationMonth], filepath: Optional[str] = None) -> str:
    """Export the monthly schedule as CSV with amounts in euros.

    Returns the CSV text; also writes it to ``filepath`` when given.
    """
    df = schedule_to_dataframe(months)
    df[CSV_MONEY_COLUMNS] = df[CSV_MONEY_COLUMNS].astype(float) / 100
    df['phase'] = df['phase'].map(lambda p: p.value if isinstance(p, SelfBuildPhase) else p)
    csv = df.to_csv(index=False, float_format='%.2f')

    if filepath is not None:
        with open(filepath, 'w') as f:
            f.write(csv)
    return csv
