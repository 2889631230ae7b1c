"""
Network Conditions

CIDR-based conditions over an IP address stored in request metadata:
- ip_allow: meets when the address is inside one of the networks
- ip_deny: meets when the address is outside every network

Register them by extending the default registry:

    registry = ConditionRegistry(NETWORK_CONDITIONS)
"""

import ipaddress
from typing import Any, ClassVar

from pydantic import Field

from warden.condition import Condition, ConditionBuilder
from warden.request import Request


def _parse_ip(value: Any) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    if not isinstance(value, str):
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def match_ip(value: str, networks: list[str]) -> bool:
    """
    True when value is an address inside one of the CIDR networks.

    An unparsable network stops the scan and never matches.
    """
    ip = _parse_ip(value)
    if ip is None:
        return False

    for network in networks:
        try:
            cidr = ipaddress.ip_network(network, strict=False)
        except ValueError:
            return False
        if ip.version == cidr.version and ip in cidr:
            return True

    return False


class IPAllowCondition(Condition):
    """Allows access when the address falls within one of the networks."""
    type_name: ClassVar[str] = "ip_allow"

    networks: list[str] = Field(default_factory=list)

    def meets(self, value: Any, request: Request | None) -> bool:
        return match_ip(value, self.networks)


class IPDenyCondition(Condition):
    """Denies access when the address falls within one of the networks."""
    type_name: ClassVar[str] = "ip_deny"

    networks: list[str] = Field(default_factory=list)

    def meets(self, value: Any, request: Request | None) -> bool:
        if _parse_ip(value) is None:
            return False
        return not match_ip(value, self.networks)


NETWORK_CONDITIONS: dict[str, ConditionBuilder] = {
    IPAllowCondition.type_name: IPAllowCondition,
    IPDenyCondition.type_name: IPDenyCondition,
}
