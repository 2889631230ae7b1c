# Optional condition types
# Not part of the default registry; extend a ConditionRegistry to use them

from warden.conditions.network import (
    IPAllowCondition,
    IPDenyCondition,
    NETWORK_CONDITIONS,
    match_ip,
)

__all__ = [
    "IPAllowCondition",
    "IPDenyCondition",
    "NETWORK_CONDITIONS",
    "match_ip",
]
