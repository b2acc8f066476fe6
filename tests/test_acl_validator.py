"""
Unit tests for acl_validator.py

Covers stage ordering, error aggregation across stages, and the render guard.
"""

import pytest
from acl_parser.diagnostics import ErrorKind
from acl_parser.port_parser import PortNum
from acl_engine.acl_validator import AclValidator, STAGE_ORDER, ValidationStage
from acl_engine.capability import CapabilityMatrix, Device, PlatformCapability
from acl_engine.errors import ValidationFailed


@pytest.fixture
def validator():
    matrix = CapabilityMatrix([
        PlatformCapability.build(
            make="juniper",
            models=["srx1500"],
            interface_patterns=[r"^(ae|lo)\d{1,3}(\.\d{1,3})?$"],
            device_name_pattern=r"^[a-z]{3}\d{3}-(ext|int)-(fw|sw|rt)\d{1,2}$",
        )
    ])
    return AclValidator(matrix)


GENERIC_RULES = [
    "allow icmp outside any inside 8",
    "deny tcp outside any inside 22",
    "allowlog ip outside any inside 80,443",
    "denylog udp outside any inside 161-162",
]


def _device(**overrides):
    values = dict(hostname="rsk101-ext-fw1", make="juniper", model="srx1500",
                  ingress_interfaces=("ae10",), egress_interfaces=("ae20",),
                  source="edge.yaml", line=10)
    values.update(overrides)
    return Device(**values)


def test_clean_run(validator):
    """Test a valid rule set passes every stage"""
    report = validator.validate([_device()], GENERIC_RULES, "edge.yaml")

    assert report.is_clean
    assert len(report.rules) == 4
    assert len(report.expanded_rules) == 6
    assert report.stages == STAGE_ORDER + [ValidationStage.REPORTED]


def test_failing_stages_do_not_abort_later_ones(validator):
    """Test device and rule problems are all reported in one run"""
    device = _device(hostname="badname", model="mx480",
                     ingress_interfaces=("eth0",), egress_interfaces=("eth1",))
    rules = ["allow icmps outside any inside 8", "deny tcp outside any inside 30-20", "allow tcp"]

    report = validator.validate([device], rules, "edge.yaml")

    assert not report.is_clean
    assert sorted(k.value for k in report.diagnostics.kinds()) == sorted([
        "DeviceNamingErr",
        "ModelNotSupported",
        "IngressInterfaceInvalid",
        "EgressInterfaceInvalid",
        "ProtocolUnsupported",
        "ExpandingDstPortInvalid",
        "RuleLengthErr",
    ])
    assert report.stages[-1] == ValidationStage.REPORTED


def test_rule_length_error_reports_no_field_errors(validator):
    """Test a short line yields only its RuleLengthErr"""
    report = validator.validate([], ["allow icmps outside 8"], "r.txt")

    diagnostics = list(report.diagnostics)
    assert len(diagnostics) == 1
    assert diagnostics[0].kind == ErrorKind.RULE_LENGTH
    assert diagnostics[0].detail == "expected 6 fields, got 4"


def test_runs_are_idempotent(validator):
    """Test two runs on the same input give the same ordered diagnostics"""
    device = _device(hostname="bad", ingress_interfaces=("eth0",))
    rules = ["allow tcp inside 200-100 outside 22", "permit ip a any b any"]

    first = validator.validate([device], rules, "edge.yaml")
    second = validator.validate([device], rules, "edge.yaml")

    assert first.diagnostics.sorted() == second.diagnostics.sorted()
    assert first.diagnostics.render() == second.diagnostics.render()


def test_render_context_when_clean(validator):
    """Test the renderer receives devices and expanded rules"""
    report = validator.validate([_device()], ["denylog udp outside any inside 161-162"], "edge.yaml")

    context = report.render_context({'source': 'edge.yaml'})

    assert context['devices'][0]['hostname'] == "rsk101-ext-fw1"
    assert [r['dst_port'] for r in context['rules']] == [161, 162]
    assert context['source'] == 'edge.yaml'
    assert report.expanded_rules[0].dst_port == PortNum(161)


def test_render_context_refused_when_not_clean(validator):
    """Test nothing reaches the renderer from a failed run"""
    report = validator.validate([], ["allow tcp"], "r.txt")
    with pytest.raises(ValidationFailed):
        report.render_context()
