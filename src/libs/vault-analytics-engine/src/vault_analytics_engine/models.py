# src/libs/vault-analytics-engine/src/vault_analytics_engine/models.py
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Dict, Mapping, Optional

from .constants import (
    APR_PERCENT,
    AUM_USD,
    DATE,
    DEPOSITS_CUM_USD,
    PNL_USD,
    ROI_PERCENT,
    TWRR_PERCENT,
    UNIT_EPSILON,
    WITHDRAWALS_CUM_USD,
)
from .helpers import coerce_float


@dataclass(frozen=True)
class Asset:
    """An asset identity. The type is part of the identity, so CRYPTO:BTC != FIAT:BTC."""
    type: str
    symbol: str

    def __post_init__(self):
        object.__setattr__(self, "type", (self.type or "").upper())
        object.__setattr__(self, "symbol", (self.symbol or "").upper())

    @property
    def key(self) -> str:
        return f"{self.type}:{self.symbol}"


@dataclass(frozen=True)
class VaultEvent:
    """One immutable ledger entry of a vault."""
    vault: str
    kind: str
    asset: Asset
    amount: float
    usd_value: Optional[float]
    at: datetime
    account: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def create(
        cls,
        vault: str,
        kind: str,
        asset_type: str,
        asset_symbol: str,
        amount: Any,
        usd_value: Any,
        at: datetime,
        account: Optional[str] = None,
        note: Optional[str] = None,
    ) -> "VaultEvent":
        """
        Builds an event from loosely typed ledger fields. Amounts coerce to 0.0
        and naive timestamps are taken as UTC;
        a missing USD value stays None so a valuation without a figure can be told
        apart from a valuation of zero.
        """
        return cls(
            vault=vault,
            kind=(kind or "").upper(),
            asset=Asset(asset_type, asset_symbol),
            amount=coerce_float(amount),
            usd_value=None if usd_value is None else coerce_float(usd_value),
            at=at if at.tzinfo is not None else at.replace(tzinfo=UTC),
            account=account,
            note=note,
        )

    @property
    def day(self) -> date:
        return self.at.date()

    @property
    def usd(self) -> float:
        return self.usd_value or 0.0


@dataclass(frozen=True)
class VaultState:
    """Running ledger state produced by replaying events in order."""
    positions: Mapping[Asset, float] = field(default_factory=dict)
    deposited_cum_usd: float = 0.0
    withdrawn_cum_usd: float = 0.0
    last_valuation_usd: Optional[float] = None
    net_flow_since_valuation_usd: float = 0.0
    first_deposit_date: Optional[date] = None

    @property
    def net_contributed_usd(self) -> float:
        return self.deposited_cum_usd - self.withdrawn_cum_usd

    @property
    def has_valuation_anchor(self) -> bool:
        return self.last_valuation_usd is not None

    def has_open_positions(self) -> bool:
        return any(abs(units) >= UNIT_EPSILON for units in self.positions.values())


@dataclass(frozen=True)
class CashFlowEntry:
    """A signed flow: negative is money into the vault, positive is money out."""
    amount_usd: float
    days_from_start: int
    date: Optional[date] = None


@dataclass(frozen=True)
class DailySeriesPoint:
    date: date
    aum_usd: float
    deposits_cum_usd: float
    withdrawals_cum_usd: float
    pnl_usd: float
    roi_percent: float
    apr_percent: float
    twrr_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            DATE: self.date,
            AUM_USD: self.aum_usd,
            DEPOSITS_CUM_USD: self.deposits_cum_usd,
            WITHDRAWALS_CUM_USD: self.withdrawals_cum_usd,
            PNL_USD: self.pnl_usd,
            ROI_PERCENT: self.roi_percent,
            APR_PERCENT: self.apr_percent,
            TWRR_PERCENT: self.twrr_percent,
        }


@dataclass(frozen=True)
class LatestMetrics:
    """Point-in-time metrics of one vault, shared by the header and summary reports."""
    aum_usd: float = 0.0
    pnl_usd: float = 0.0
    roi_percent: float = 0.0
    apr_percent: float = 0.0
    twrr_percent: float = 0.0
    last_valuation_usd: Optional[float] = None
    net_flow_since_valuation_usd: float = 0.0
    deposits_cum_usd: float = 0.0
    withdrawals_cum_usd: float = 0.0
    as_of: Optional[datetime] = None
