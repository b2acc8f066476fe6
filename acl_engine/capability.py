"""
Platform Capability Validator

Checks a device against the capability matrix: hostname convention, make and
model support, and ingress/egress interface names. Every check runs for every
device; a failed check never hides the ones after it.
"""

import re
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple

from acl_parser.diagnostics import DiagnosticsCollector, ErrorKind

logger = logging.getLogger(__name__)

Location = Tuple[int, int]


# ============================================================================
# Capability Matrix
# ============================================================================

@dataclass(frozen=True)
class PlatformCapability:
    """What one platform make supports"""
    make: str
    models: frozenset
    interface_patterns: Tuple[Pattern, ...]
    device_name_pattern: Pattern

    def supports_model(self, model: str) -> bool:
        return model in self.models

    def is_valid_interface(self, name: str) -> bool:
        """An interface is valid if any of the make's patterns match it"""
        return any(pattern.search(name) for pattern in self.interface_patterns)

    @classmethod
    def build(cls, make: str, models: Iterable[str], interface_patterns: Iterable[str],
              device_name_pattern: str) -> 'PlatformCapability':
        """Compile pattern strings; raises re.error on a bad pattern"""
        return cls(
            make=make,
            models=frozenset(models),
            interface_patterns=tuple(re.compile(p) for p in interface_patterns),
            device_name_pattern=re.compile(device_name_pattern),
        )


class CapabilityMatrix:
    """
    Read-only mapping of make to PlatformCapability.
    Built once per run and shared by reference.
    """

    def __init__(self, platforms: Iterable[PlatformCapability]):
        self._platforms = MappingProxyType({p.make: p for p in platforms})

    @property
    def platforms(self) -> Mapping[str, PlatformCapability]:
        return self._platforms

    def lookup(self, make: str) -> Optional[PlatformCapability]:
        return self._platforms.get(make)

    def makes(self) -> List[str]:
        return sorted(self._platforms)

    def __contains__(self, make):
        return make in self._platforms

    def __len__(self):
        return len(self._platforms)


# ============================================================================
# Device
# ============================================================================

@dataclass(frozen=True)
class Device:
    """A deployment target, as read by the renderer"""
    hostname: str
    make: str
    model: str
    ingress_interfaces: Tuple[str, ...] = ()
    egress_interfaces: Tuple[str, ...] = ()

    # Where the device was declared; not part of its identity
    source: str = field(default="<device>", compare=False)
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)
    ingress_locations: Tuple[Location, ...] = field(default=(), compare=False)
    egress_locations: Tuple[Location, ...] = field(default=(), compare=False)

    def interface_location(self, index: int, locations: Sequence[Location]) -> Location:
        if index < len(locations):
            return locations[index]
        return (self.line, self.column)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hostname': self.hostname,
            'make': self.make,
            'model': self.model,
            'ingress_interfaces': list(self.ingress_interfaces),
            'egress_interfaces': list(self.egress_interfaces),
        }


# ============================================================================
# Validator
# ============================================================================

class CapabilityValidator:
    """Runs the device checks against one matrix"""

    def __init__(self, matrix: CapabilityMatrix, device_name_override: Optional[Pattern] = None):
        self.matrix = matrix
        self.device_name_override = device_name_override

    def validate(self, device: Device, collector: DiagnosticsCollector):
        """Run every check for one device"""
        self.check_naming(device, collector)
        self.check_platform(device, collector)
        self.check_ingress(device, collector)
        self.check_egress(device, collector)

    def check_naming(self, device: Device, collector: DiagnosticsCollector) -> bool:
        pattern = self._device_name_pattern(device)
        if pattern is None:
            collector.add(
                ErrorKind.DEVICE_NAMING, device.source, device.line, device.column,
                f"no naming convention for make '{device.make}' of '{device.hostname}'"
            )
            return False
        if pattern.search(device.hostname):
            return True
        collector.add(
            ErrorKind.DEVICE_NAMING, device.source, device.line, device.column,
            f"'{device.hostname}' does not match '{pattern.pattern}'"
        )
        return False

    def check_platform(self, device: Device, collector: DiagnosticsCollector) -> bool:
        platform = self.matrix.lookup(device.make)
        if platform is None:
            known = ', '.join(self.matrix.makes()) or 'none'
            collector.add(
                ErrorKind.MODEL_NOT_SUPPORTED, device.source, device.line, device.column,
                f"model '{device.model}' for unknown make '{device.make}' (supported makes: {known})"
            )
            return False
        if not platform.supports_model(device.model):
            known = ', '.join(sorted(platform.models)) or 'none'
            collector.add(
                ErrorKind.MODEL_NOT_SUPPORTED, device.source, device.line, device.column,
                f"model '{device.model}' for make '{device.make}' (supported: {known})"
            )
            return False
        return True

    def check_ingress(self, device: Device, collector: DiagnosticsCollector) -> bool:
        return self._check_interfaces(
            device, device.ingress_interfaces, device.ingress_locations,
            ErrorKind.INGRESS_INTERFACE_INVALID, collector
        )

    def check_egress(self, device: Device, collector: DiagnosticsCollector) -> bool:
        return self._check_interfaces(
            device, device.egress_interfaces, device.egress_locations,
            ErrorKind.EGRESS_INTERFACE_INVALID, collector
        )

    def _check_interfaces(self, device: Device, interfaces: Sequence[str],
                          locations: Sequence[Location], kind: ErrorKind,
                          collector: DiagnosticsCollector) -> bool:
        # An unknown make has no patterns, so none of its interfaces match
        platform = self.matrix.lookup(device.make)

        valid = True
        for index, name in enumerate(interfaces):
            if platform is not None and platform.is_valid_interface(name):
                logger.debug("  '%s' is valid on %s", name, device.make)
                continue
            line, column = device.interface_location(index, locations)
            if platform is None:
                detail = f"'{name}' on '{device.hostname}': make '{device.make}' has no interface patterns"
            else:
                detail = f"'{name}' on '{device.hostname}' is not a {device.make} interface"
            collector.add(kind, device.source, line, column, detail)
            valid = False
        return valid

    def _device_name_pattern(self, device: Device) -> Optional[Pattern]:
        if self.device_name_override is not None:
            return self.device_name_override
        platform = self.matrix.lookup(device.make)
        return platform.device_name_pattern if platform else None
