from .ledger import Currency, ProgressionLedger
from .xp_curve import XPCurve

__all__ = ["Currency", "ProgressionLedger", "XPCurve"]
