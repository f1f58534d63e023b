# src/libs/vault-common/vault_common/database_models.py
from sqlalchemy import (
    Column, Integer,
    String, Numeric, DateTime,
    Date, func,
    ForeignKey, UniqueConstraint, Index
)

from .db_base import Base

class Vault(Base):
    __tablename__ = 'vaults'

    name = Column(String, primary_key=True)
    status = Column(String, nullable=False, default='ACTIVE')
    created_at = Column(DateTime(timezone=True), default=func.now())


class VaultEntry(Base):
    """One ledger event of a vault. Rows are written elsewhere and only read here."""
    __tablename__ = 'vault_entries'

    id = Column(Integer, primary_key=True, autoincrement=True)
    vault = Column(String, ForeignKey('vaults.name', ondelete='CASCADE'), nullable=False)
    type = Column(String, nullable=False)
    asset_type = Column(String, nullable=False)
    asset_symbol = Column(String, nullable=False)
    amount = Column(Numeric(38, 18), nullable=False)
    # NULL on a VALUATION that carries no figure.
    usd_value = Column(Numeric(38, 18), nullable=True)
    at = Column(DateTime(timezone=True), nullable=False)
    account = Column(String, nullable=True)
    note = Column(String, nullable=True)

    __table_args__ = (
        Index('ix_vault_entries_vault_at', 'vault', 'at'),
    )


class AssetPrice(Base):
    __tablename__ = 'asset_prices'

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_type = Column(String, nullable=False)
    symbol = Column(String, nullable=False)
    price_date = Column(Date, nullable=False)
    rate_usd = Column(Numeric(38, 18), nullable=False)
    source = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())

    __table_args__ = (UniqueConstraint('asset_type', 'symbol', 'price_date', name='_asset_price_date_uc'),)
