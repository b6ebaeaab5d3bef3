"""
FARM EQUIPMENT FINANCE & LEASE ENGINE
Version 1.0
"""

from .config import EngineConfig
from .ledger import FarmLedger
from .models import (
    DealStatus,
    DealType,
    EngineResult,
    FinanceDeal,
    FinanceTerms,
    LeaseAction,
    LeaseDeal,
    LeaseStatus,
    LeaseTermination,
    LeaseTerms,
)
from .processor import FinanceEngine
from .registry import DealRegistry

__version__ = "1.0.0"

__all__ = [
    'FinanceEngine',
    'DealRegistry',
    'FarmLedger',
    'EngineConfig',
    'EngineResult',
    'FinanceDeal',
    'LeaseDeal',
    'FinanceTerms',
    'LeaseTerms',
    'LeaseTermination',
    'DealType',
    'DealStatus',
    'LeaseStatus',
    'LeaseAction',
]
