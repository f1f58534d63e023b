# tests/unit/libs/vault-analytics-engine/conftest.py
from datetime import UTC, datetime, time

import pytest

from vault_analytics_engine.models import VaultEvent


@pytest.fixture
def make_event():
    """Builds ledger events; `day` is a date, the event lands at 12:00 UTC unless `at_time` is given."""
    def _make(kind, day, usd=None, amount=None, asset_type="CRYPTO", symbol="USDT", vault="main", at_time=None):
        return VaultEvent.create(
            vault=vault,
            kind=kind,
            asset_type=asset_type,
            asset_symbol=symbol,
            amount=usd if amount is None else amount,
            usd_value=usd,
            at=datetime.combine(day, at_time or time(12, 0), tzinfo=UTC),
        )
    return _make
