"""
ACL Rule Parser
Splits a rule line into its six fields and parses each one.

    ACTION PROTOCOL SRC_PREFIX SRC_PORT DST_PREFIX DST_PORT

All field errors on a line are recorded before the line is given up, so a
single malformed rule can surface several diagnostics at once.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from acl_parser.diagnostics import DiagnosticsCollector, ErrorKind
from acl_parser.port_parser import PortSpec, parse_port_spec

logger = logging.getLogger(__name__)

RULE_FIELD_COUNT = 6

_FIELD = re.compile(r'\S+')


# ============================================================================
# Field Types
# ============================================================================

class Action(Enum):
    ALLOW = "allow"
    DENY = "deny"
    ALLOW_LOG = "allowlog"
    DENY_LOG = "denylog"

    @classmethod
    def parse(cls, text: str) -> Optional['Action']:
        for action in cls:
            if action.value == text:
                return action
        return None

    def __str__(self):
        return self.value


class Protocol(Enum):
    IP = "ip"
    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"

    @classmethod
    def parse(cls, text: str) -> Optional['Protocol']:
        text = text.lower()
        for protocol in cls:
            if protocol.value == text:
                return protocol
        return None

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class RulePosition:
    """Where a rule came from, with the start column of each of its fields"""
    source: str
    line: int
    columns: Tuple[int, ...] = (0, 0, 0, 0, 0, 0)

    @property
    def src_port_column(self) -> int:
        return self.columns[3]

    @property
    def dst_port_column(self) -> int:
        return self.columns[5]


@dataclass(frozen=True)
class Rule:
    """A parsed rule; ports may still denote many values"""
    action: Action
    protocol: Protocol
    src_prefix: str
    src_port: PortSpec
    dst_prefix: str
    dst_port: PortSpec
    position: Optional[RulePosition] = field(default=None, compare=False)

    def __str__(self):
        return (f"{self.action} {self.protocol} {self.src_prefix} {self.src_port} "
                f"{self.dst_prefix} {self.dst_port}")


@dataclass(frozen=True)
class RuleLine:
    """Raw rule text plus the location of its first character"""
    text: str
    line: int
    column: int = 0


# ============================================================================
# Parser
# ============================================================================

def parse_rule(text: str, source: str, line: int, collector: DiagnosticsCollector,
               column_offset: int = 0) -> Optional[Rule]:
    """
    Parse one rule line.
    Records every problem found to the collector and returns None if there was any.
    """
    matches = list(_FIELD.finditer(text))

    if len(matches) != RULE_FIELD_COUNT:
        collector.add(
            ErrorKind.RULE_LENGTH, source, line, column_offset,
            f"expected {RULE_FIELD_COUNT} fields, got {len(matches)}"
        )
        return None

    fields = [m.group(0) for m in matches]
    columns = tuple(m.start() + column_offset for m in matches)
    error_count = collector.count()

    action = Action.parse(fields[0])
    if action is None:
        collector.add(ErrorKind.ACTION_INVALID, source, line, columns[0],
                      f"unrecognized action '{fields[0]}'")

    protocol = Protocol.parse(fields[1])
    if protocol is None:
        collector.add(ErrorKind.PROTOCOL_UNSUPPORTED, source, line, columns[1],
                      f"unrecognized protocol '{fields[1]}'")

    src_port, reason = parse_port_spec(fields[3])
    if reason:
        collector.add(ErrorKind.SRC_PORT_INVALID, source, line, columns[3], reason)

    dst_port, reason = parse_port_spec(fields[5])
    if reason:
        collector.add(ErrorKind.DST_PORT_INVALID, source, line, columns[5], reason)

    if collector.count() > error_count:
        logger.debug("Rejected rule at %s:%d: %s", source, line, text.strip())
        return None

    return Rule(
        action=action,
        protocol=protocol,
        src_prefix=fields[2],
        src_port=src_port,
        dst_prefix=fields[4],
        dst_port=dst_port,
        position=RulePosition(source, line, columns),
    )


def parse_rules(lines: Iterable[Union[str, RuleLine]], source: str,
                collector: DiagnosticsCollector) -> List[Rule]:
    """
    Parse a sequence of rule lines.
    Plain strings are numbered from 1 in the order given.
    """
    rules = []
    for index, raw in enumerate(lines):
        if isinstance(raw, str):
            raw = RuleLine(raw, index + 1)
        rule = parse_rule(raw.text, source, raw.line, collector, raw.column)
        if rule is not None:
            rules.append(rule)
    logger.info("Parsed %d valid rule(s) from %s", len(rules), source)
    return rules
