"""
Port Expansion Engine

Turns parsed rules into one rule per concrete (source port, destination port)
pairing. Port specs are re-validated first: the parser only checks syntax, so
an inverted range such as 200-100 is first caught here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from acl_parser.diagnostics import DiagnosticsCollector, ErrorKind
from acl_parser.port_parser import (
    AnyPort, PortNum, PortRange, PortList, PortRangeList, PortSpec, is_valid_port
)
from acl_parser.rule_parser import Action, Protocol, Rule, RulePosition

logger = logging.getLogger(__name__)

ExpandedPort = Union[PortNum, AnyPort]


@dataclass(frozen=True)
class ExpandedRule:
    """A rule whose ports are each a single port or `any`"""
    action: Action
    protocol: Protocol
    src_prefix: str
    src_port: ExpandedPort
    dst_prefix: str
    dst_port: ExpandedPort
    position: Optional[RulePosition] = field(default=None, compare=False)

    def __str__(self):
        return (f"{self.action} {self.protocol} {self.src_prefix} {self.src_port} "
                f"{self.dst_prefix} {self.dst_port}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action.value,
            'protocol': self.protocol.value,
            'src_prefix': self.src_prefix,
            'src_port': _port_value(self.src_port),
            'dst_prefix': self.dst_prefix,
            'dst_port': _port_value(self.dst_port),
        }


def _port_value(port: ExpandedPort):
    if isinstance(port, AnyPort):
        return "any"
    return port.value


# ============================================================================
# Semantic Validation
# ============================================================================

def check_port_spec(spec: PortSpec) -> Optional[str]:
    """Return why `spec` cannot be expanded, or None if it can"""
    if isinstance(spec, AnyPort):
        return None
    if isinstance(spec, PortNum):
        return _check_num(spec)
    if isinstance(spec, PortRange):
        return _check_range(spec)
    if isinstance(spec, (PortList, PortRangeList)):
        for item in spec.items:
            reason = _check_range(item) if isinstance(item, PortRange) else _check_num(item)
            if reason:
                return reason
        return None
    raise TypeError(f"Unhandled port spec: {spec!r}")


def _check_num(port: PortNum) -> Optional[str]:
    if not is_valid_port(port.value):
        return f"port {port.value} is out of range (0-65535)"
    return None


def _check_range(port: PortRange) -> Optional[str]:
    for value in (port.low, port.high):
        if not is_valid_port(value):
            return f"port {value} in range {port} is out of range (0-65535)"
    if port.low > port.high:
        return f"range {port} starts after it ends"
    return None


# ============================================================================
# Enumeration
# ============================================================================

def enumerate_ports(spec: PortSpec) -> List[ExpandedPort]:
    """
    List the concrete ports a spec denotes, in written order.
    Ranges expand ascending; `any` stays a single sentinel.
    """
    if isinstance(spec, AnyPort):
        return [spec]
    if isinstance(spec, PortNum):
        return [spec]
    if isinstance(spec, PortRange):
        return [PortNum(value) for value in range(spec.low, spec.high + 1)]
    if isinstance(spec, (PortList, PortRangeList)):
        ports = []
        for item in spec.items:
            ports.extend(enumerate_ports(item))
        return ports
    raise TypeError(f"Unhandled port spec: {spec!r}")


def expand_rule(rule: Rule, collector: DiagnosticsCollector) -> List[ExpandedRule]:
    """
    Expand one rule into the row-major product of its source and destination ports.
    Both ports are checked before giving up, and nothing is returned if either fails.
    """
    position = rule.position or RulePosition("<rule>", 0)

    src_reason = check_port_spec(rule.src_port)
    if src_reason:
        collector.add(ErrorKind.EXPANDING_SRC_PORT_INVALID, position.source,
                      position.line, position.src_port_column, src_reason)

    dst_reason = check_port_spec(rule.dst_port)
    if dst_reason:
        collector.add(ErrorKind.EXPANDING_DST_PORT_INVALID, position.source,
                      position.line, position.dst_port_column, dst_reason)

    if src_reason or dst_reason:
        return []

    dst_ports = enumerate_ports(rule.dst_port)
    expanded = []
    for src in enumerate_ports(rule.src_port):
        for dst in dst_ports:
            expanded.append(ExpandedRule(
                action=rule.action,
                protocol=rule.protocol,
                src_prefix=rule.src_prefix,
                src_port=src,
                dst_prefix=rule.dst_prefix,
                dst_port=dst,
                position=rule.position,
            ))

    if len(expanded) > 1:
        logger.debug("Expanded '%s' into %d rules", rule, len(expanded))
    return expanded


def expand_rules(rules: Iterable[Rule], collector: DiagnosticsCollector) -> List[ExpandedRule]:
    """Expand every rule in order"""
    expanded = []
    for rule in rules:
        expanded.extend(expand_rule(rule, collector))
    return expanded
