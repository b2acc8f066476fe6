"""
ACL Diagnostics
Located, classified validation errors and the collector that accumulates them.
Every stage records here instead of raising, so one run reports everything.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List


# ============================================================================
# Error Kinds
# ============================================================================

class ErrorKind(Enum):
    RULE_LENGTH = "RuleLengthErr"
    ACTION_INVALID = "ActionInvalid"
    PROTOCOL_UNSUPPORTED = "ProtocolUnsupported"
    SRC_PORT_INVALID = "SrcPortInvalid"
    DST_PORT_INVALID = "DstPortInvalid"
    EXPANDING_SRC_PORT_INVALID = "ExpandingSrcPortInvalid"
    EXPANDING_DST_PORT_INVALID = "ExpandingDstPortInvalid"
    DEVICE_NAMING = "DeviceNamingErr"
    MODEL_NOT_SUPPORTED = "ModelNotSupported"
    INGRESS_INTERFACE_INVALID = "IngressInterfaceInvalid"
    EGRESS_INTERFACE_INVALID = "EgressInterfaceInvalid"


# Human message prefix per kind; the detail is appended after it
KIND_MESSAGES = {
    ErrorKind.RULE_LENGTH: "rule must have exactly 6 fields",
    ErrorKind.ACTION_INVALID: "expected 'allow', 'deny', 'allowlog', or 'denylog'",
    ErrorKind.PROTOCOL_UNSUPPORTED: "expected 'ip', 'tcp', 'udp', or 'icmp'",
    ErrorKind.SRC_PORT_INVALID: "expected a port (0-65535), range, comma-separated list, or 'any'",
    ErrorKind.DST_PORT_INVALID: "expected a port (0-65535), range, comma-separated list, or 'any'",
    ErrorKind.EXPANDING_SRC_PORT_INVALID: "source port cannot be expanded",
    ErrorKind.EXPANDING_DST_PORT_INVALID: "destination port cannot be expanded",
    ErrorKind.DEVICE_NAMING: "hostname does not follow the naming convention",
    ErrorKind.MODEL_NOT_SUPPORTED: "platform model is not supported",
    ErrorKind.INGRESS_INTERFACE_INVALID: "ingress interface does not exist on platform",
    ErrorKind.EGRESS_INTERFACE_INVALID: "egress interface does not exist on platform",
}


# ============================================================================
# Diagnostic
# ============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """A single located, classified validation error"""
    source: str
    line: int
    column: int
    kind: ErrorKind
    detail: str

    @property
    def message(self) -> str:
        return f"{KIND_MESSAGES[self.kind]}: {self.detail}"

    def sort_key(self):
        return (self.source, self.line, self.column)

    def format(self, color: bool = False) -> str:
        location = f"{self.source}:{self.line}:{self.column}"
        if not color:
            return f"{location} {self.kind.value}: {self.message}"
        red = "\033[91m"
        bold = "\033[1m"
        reset = "\033[0m"
        return f"{bold}{location}{reset} {red}{self.kind.value}{reset}: {self.message}"

    def __str__(self):
        return self.format()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'line': self.line,
            'column': self.column,
            'kind': self.kind.value,
            'detail': self.detail,
            'message': self.message,
        }


# ============================================================================
# Collector
# ============================================================================

class DiagnosticsCollector:
    """
    Append-only sequence of diagnostics.
    Discovery order is kept; rendering is always sorted by (file, line, column).
    """

    def __init__(self):
        self._diagnostics: List[Diagnostic] = []

    def record(self, diagnostic: Diagnostic):
        """Append a diagnostic"""
        self._diagnostics.append(diagnostic)

    def add(self, kind: ErrorKind, source: str, line: int, column: int, detail: str) -> Diagnostic:
        """Build and record a diagnostic in one call"""
        diagnostic = Diagnostic(source, line, column, kind, detail)
        self.record(diagnostic)
        return diagnostic

    def count(self) -> int:
        return len(self._diagnostics)

    def is_clean(self) -> bool:
        return self.count() == 0

    def sorted(self) -> List[Diagnostic]:
        # sorted() is stable, so ties keep discovery order
        return sorted(self._diagnostics, key=Diagnostic.sort_key)

    def kinds(self) -> List[ErrorKind]:
        return [d.kind for d in self.sorted()]

    def render(self, color: bool = False) -> str:
        """One line per diagnostic, grouped by file then line then column"""
        return "\n".join(d.format(color) for d in self.sorted())

    def summary(self) -> str:
        if self.is_clean():
            return "no configuration issues found"
        return f"{self.count()} configuration issues found while parsing rules"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.is_clean(),
            'error_count': self.count(),
            'errors': [d.to_dict() for d in self.sorted()],
        }

    def __len__(self):
        return self.count()

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.sorted())


def print_validation_report(collector: DiagnosticsCollector, color: bool = True):
    """Pretty print validation results"""

    if not collector.is_clean():
        print("\n" + "=" * 60)
        print(f"ERRORS ({collector.count()})")
        print("=" * 60)
        print(collector.render(color))

    if collector.is_clean():
        print("\n✓ Validation successful - " + collector.summary())
    else:
        print(f"\n✗ {collector.summary()}")
