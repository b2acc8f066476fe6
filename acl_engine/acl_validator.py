"""
ACL Validation Orchestrator

Runs the validation stages in a fixed order over one rule set:

    DEVICE_NAMING -> PLATFORM_SUPPORT -> INGRESS_INTERFACES
        -> EGRESS_INTERFACES -> RULE_VALIDATION -> REPORTED

Every stage runs to completion even if an earlier one failed, so a single run
surfaces every problem. The rule set passes only if no diagnostic was recorded.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence, Union

from acl_parser.diagnostics import DiagnosticsCollector
from acl_parser.rule_parser import Rule, RuleLine, parse_rules
from acl_engine.capability import CapabilityMatrix, CapabilityValidator, Device
from acl_engine.errors import ValidationFailed
from acl_engine.port_expander import ExpandedRule, expand_rules

logger = logging.getLogger(__name__)


class ValidationStage(Enum):
    DEVICE_NAMING = "device naming"
    PLATFORM_SUPPORT = "platform support"
    INGRESS_INTERFACES = "ingress interfaces"
    EGRESS_INTERFACES = "egress interfaces"
    RULE_VALIDATION = "rule validation"
    REPORTED = "reported"


STAGE_ORDER = [
    ValidationStage.DEVICE_NAMING,
    ValidationStage.PLATFORM_SUPPORT,
    ValidationStage.INGRESS_INTERFACES,
    ValidationStage.EGRESS_INTERFACES,
    ValidationStage.RULE_VALIDATION,
]


@dataclass
class ValidationReport:
    """Everything one validation run produced"""
    diagnostics: DiagnosticsCollector
    devices: List[Device] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    expanded_rules: List[ExpandedRule] = field(default_factory=list)
    stages: List[ValidationStage] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return self.diagnostics.is_clean()

    def render_context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Structure handed to the template renderer.
        Only available when the run recorded no diagnostics.
        """
        if not self.is_clean:
            raise ValidationFailed(self.diagnostics.count())

        context = {
            'devices': [device.to_dict() for device in self.devices],
            'rules': [rule.to_dict() for rule in self.expanded_rules],
        }
        if extra:
            context.update(extra)
        return context


class AclValidator:
    """
    Validation orchestrator.
    One instance may run any number of validations against the same matrix.
    """

    def __init__(self, matrix: CapabilityMatrix, device_name_override: Optional[Pattern] = None):
        self.matrix = matrix
        self.capabilities = CapabilityValidator(matrix, device_name_override)

    def validate(self, devices: Sequence[Device], rule_lines: Iterable[Union[str, RuleLine]],
                 source: str) -> ValidationReport:
        """Run all stages and return the report"""
        report = ValidationReport(diagnostics=DiagnosticsCollector(), devices=list(devices))
        collector = report.diagnostics

        for stage in STAGE_ORDER:
            before = collector.count()
            self._run_stage(stage, report, rule_lines, source)
            report.stages.append(stage)
            found = collector.count() - before
            if found:
                logger.info("Stage '%s' found %d issue(s)", stage.value, found)
            else:
                logger.info("Stage '%s' passed", stage.value)

        report.stages.append(ValidationStage.REPORTED)
        logger.info("Validation of %s finished: %s", source, collector.summary())
        return report

    def _run_stage(self, stage: ValidationStage, report: ValidationReport,
                   rule_lines: Iterable[Union[str, RuleLine]], source: str):
        collector = report.diagnostics

        if stage == ValidationStage.DEVICE_NAMING:
            for device in report.devices:
                self.capabilities.check_naming(device, collector)
        elif stage == ValidationStage.PLATFORM_SUPPORT:
            for device in report.devices:
                self.capabilities.check_platform(device, collector)
        elif stage == ValidationStage.INGRESS_INTERFACES:
            for device in report.devices:
                self.capabilities.check_ingress(device, collector)
        elif stage == ValidationStage.EGRESS_INTERFACES:
            for device in report.devices:
                self.capabilities.check_egress(device, collector)
        elif stage == ValidationStage.RULE_VALIDATION:
            report.rules = parse_rules(rule_lines, source, collector)
            report.expanded_rules = expand_rules(report.rules, collector)
            logger.debug("%d rule(s) expanded to %d", len(report.rules), len(report.expanded_rules))
        else:
            raise ValueError(f"Unhandled validation stage: {stage}")
