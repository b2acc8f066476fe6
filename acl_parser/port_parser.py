"""
Port Field Parser
Parses the text of one SRC_PORT / DST_PORT field into a typed port spec.

This is the syntax pass only. Inverted ranges and duplicate entries are
accepted here and rejected later, when the rule is expanded.

    port-field := "any" | port-item ("," port-item)*
    port-item  := number | number "-" number
    number     := 0..65535
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union


MIN_PORT = 0
MAX_PORT = 65535

_NUMBER = re.compile(r'^[0-9]+$')


# ============================================================================
# Port Spec Variants
# ============================================================================

@dataclass(frozen=True)
class AnyPort:
    """Matches every port; never expanded into discrete values"""

    def __str__(self):
        return "any"


@dataclass(frozen=True)
class PortNum:
    """A single port"""
    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class PortRange:
    """Inclusive range of ports"""
    low: int
    high: int

    def __str__(self):
        return f"{self.low}-{self.high}"


@dataclass(frozen=True)
class PortList:
    """Comma-separated single ports, in written order"""
    items: Tuple[PortNum, ...]

    def __str__(self):
        return ",".join(str(item) for item in self.items)


@dataclass(frozen=True)
class PortRangeList:
    """Comma-separated mix of single ports and ranges, in written order"""
    items: Tuple[Union[PortNum, PortRange], ...]

    def __str__(self):
        return ",".join(str(item) for item in self.items)


PortSpec = Union[AnyPort, PortNum, PortRange, PortList, PortRangeList]
PortItem = Union[PortNum, PortRange]


# ============================================================================
# Parser
# ============================================================================

def parse_port_spec(text: str) -> Tuple[Optional[PortSpec], Optional[str]]:
    """
    Parse a port field.
    Returns (spec, None) on success or (None, reason) when the text is malformed.
    """
    if text == "any":
        return AnyPort(), None

    if not text:
        return None, "empty port field"

    items = []
    for raw_item in text.split(','):
        item, reason = _parse_port_item(raw_item)
        if reason:
            return None, f"'{text}': {reason}"
        items.append(item)

    if len(items) == 1:
        return items[0], None

    if any(isinstance(item, PortRange) for item in items):
        return PortRangeList(tuple(items)), None
    return PortList(tuple(items)), None


def _parse_port_item(text: str) -> Tuple[Optional[PortItem], Optional[str]]:
    """Parse `number` or `number-number`"""
    if not text:
        return None, "empty list item"

    if '-' in text:
        low_text, _, high_text = text.partition('-')
        if '-' in high_text:
            return None, f"malformed range '{text}'"
        low, reason = _parse_number(low_text)
        if reason:
            return None, f"malformed range '{text}': {reason}"
        high, reason = _parse_number(high_text)
        if reason:
            return None, f"malformed range '{text}': {reason}"
        return PortRange(low, high), None

    value, reason = _parse_number(text)
    if reason:
        return None, reason
    return PortNum(value), None


def _parse_number(text: str) -> Tuple[Optional[int], Optional[str]]:
    if not _NUMBER.match(text):
        return None, f"'{text}' is not a port number"
    digits = text.lstrip('0')
    if len(digits) > len(str(MAX_PORT)):
        return None, f"{digits[:8]}... is out of range ({MIN_PORT}-{MAX_PORT})"
    value = int(text)
    if value > MAX_PORT:
        return None, f"{value} is out of range ({MIN_PORT}-{MAX_PORT})"
    return value, None


def is_valid_port(value: int) -> bool:
    return MIN_PORT <= value <= MAX_PORT
