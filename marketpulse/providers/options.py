"""Options chain integration via Polygon.io.

Handles both payload shapes Polygon serves for an underlying:

* reference contracts (``/v3/reference/options/contracts``): flat records with
  ``ticker``, ``expiration_date``, ``strike_price`` and ``contract_type``;
* chain snapshots (``/v3/snapshot/options/{underlying}``): the same fields nested
  under ``details`` plus ``open_interest``, ``implied_volatility`` and ``greeks``.
"""

from typing import Any, Dict, List, Optional

import requests

from marketpulse.core.http import HttpRequest
from marketpulse.core.logger import logger
from marketpulse.models.datatypes import Greeks, OptionsContract, OptionType, parse_day
from marketpulse.providers.base import OptionsProvider

_POLYGON_CONTRACTS_URL = "https://api.polygon.io/v3/reference/options/contracts"
_POLYGON_SNAPSHOT_URL = "https://api.polygon.io/v3/snapshot/options/{underlying}"


class PolygonOptionsProvider(OptionsProvider):
    """Polygon.io options provider.

    Args:
        api_key: Polygon API key.
        use_snapshot: Query the chain snapshot endpoint (carries greeks, IV and
            open interest) instead of the reference contracts endpoint.
    """

    def __init__(self, api_key: str, use_snapshot: bool = False) -> None:
        self.api_key = api_key
        self.use_snapshot = use_snapshot

    def build_request(self, underlying: str, limit: int = 1000) -> HttpRequest:
        if self.use_snapshot:
            return HttpRequest(
                url=_POLYGON_SNAPSHOT_URL.format(underlying=underlying),
                params={"limit": min(limit, 250), "apiKey": self.api_key},
                label=f"options:{underlying}",
            )
        return HttpRequest(
            url=_POLYGON_CONTRACTS_URL,
            params={
                "underlying_ticker": underlying,
                "expired": "false",
                "limit": limit,
                "apiKey": self.api_key,
            },
            label=f"options:{underlying}",
        )

    def parse(self, response: requests.Response, underlying: str) -> List[OptionsContract]:
        payload = response.json()
        results = payload.get("results") or []
        if not results:
            logger.warning(f"PolygonOptionsProvider: no options data returned for {underlying}")
            return []

        contracts: List[OptionsContract] = []
        skipped = 0
        for raw in results:
            contract = _normalize_contract(raw, underlying)
            if contract is None:
                skipped += 1
                continue
            contracts.append(contract)

        logger.info(
            f"PolygonOptionsProvider: parsed underlying={underlying} "
            f"contracts={len(contracts)} skipped={skipped}"
        )
        return contracts


def _normalize_contract(raw: Dict[str, Any], underlying: str) -> Optional[OptionsContract]:
    """Map one Polygon result (reference or snapshot shape) to an OptionsContract."""
    details = raw.get("details") or raw
    try:
        greeks_raw = raw.get("greeks")
        return OptionsContract(
            ticker=details["ticker"],
            underlying=underlying,
            expiration=parse_day(details["expiration_date"]),
            strike=float(details["strike_price"]),
            type=OptionType(str(details["contract_type"]).lower()),
            open_interest=_opt_float(raw.get("open_interest")),
            implied_volatility=_opt_float(raw.get("implied_volatility")),
            greeks=Greeks(
                delta=_opt_float(greeks_raw.get("delta")),
                gamma=_opt_float(greeks_raw.get("gamma")),
                theta=_opt_float(greeks_raw.get("theta")),
                vega=_opt_float(greeks_raw.get("vega")),
            ) if greeks_raw else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug(f"PolygonOptionsProvider: skipped malformed contract | {exc}")
        return None


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)
