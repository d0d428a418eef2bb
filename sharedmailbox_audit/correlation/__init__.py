from .correlator import Correlator, PRIMARY_PREDICATES

AUDITS = sorted(PRIMARY_PREDICATES)

__all__ = [
    "Correlator",
    "PRIMARY_PREDICATES",
    "AUDITS",
]
