"""Regrouping helpers for options chains. Contracts are never modified, only reordered."""

from datetime import date
from typing import Dict, Iterable, List, Tuple

from marketpulse.models.datatypes import OptionsContract, OptionType

ChainKey = Tuple[str, date]


def group_by_expiration(contracts: Iterable[OptionsContract]) -> Dict[ChainKey, List[OptionsContract]]:
    """Group contracts by ``(underlying, expiration)``; each group sorted by strike then type."""
    groups: Dict[ChainKey, List[OptionsContract]] = {}
    for contract in contracts:
        groups.setdefault((contract.underlying, contract.expiration), []).append(contract)
    for key in groups:
        groups[key].sort(key=lambda c: (c.strike, c.type.value, c.ticker))
    return dict(sorted(groups.items()))


def nearest_expirations(
    contracts: Iterable[OptionsContract],
    count: int = 2,
    today: date | None = None,
) -> List[OptionsContract]:
    """
    Keep only contracts in the ``count`` earliest expirations of each underlying.

    Expirations before ``today`` are ignored when it is given.
    """
    by_underlying: Dict[str, Dict[date, List[OptionsContract]]] = {}
    for contract in contracts:
        if today is not None and contract.expiration < today:
            continue
        by_underlying.setdefault(contract.underlying, {}).setdefault(
            contract.expiration, []
        ).append(contract)

    kept: List[OptionsContract] = []
    for underlying in by_underlying:
        expirations = by_underlying[underlying]
        for expiration in sorted(expirations)[:count]:
            kept.extend(expirations[expiration])
    return kept


def split_calls_puts(
    contracts: Iterable[OptionsContract],
) -> Tuple[List[OptionsContract], List[OptionsContract]]:
    contracts = list(contracts)
    calls = [c for c in contracts if c.type is OptionType.CALL]
    puts = [c for c in contracts if c.type is OptionType.PUT]
    return calls, puts
