"""
Unit tests for rule_parser.py

Covers field splitting, per-field errors, and error positions.
"""

import pytest
from acl_parser.diagnostics import DiagnosticsCollector, ErrorKind
from acl_parser.port_parser import AnyPort, PortNum, PortList, PortRange
from acl_parser.rule_parser import Action, Protocol, RuleLine, parse_rule, parse_rules


def _parse(text):
    collector = DiagnosticsCollector()
    rule = parse_rule(text, "rules.yaml", 1, collector)
    return rule, collector


def test_parse_valid_rule():
    """Test a well-formed rule parses into its six fields"""
    rule, collector = _parse("allowlog ip outside any inside 80,443")

    assert collector.is_clean()
    assert rule.action == Action.ALLOW_LOG
    assert rule.protocol == Protocol.IP
    assert rule.src_prefix == "outside"
    assert rule.src_port == AnyPort()
    assert rule.dst_prefix == "inside"
    assert rule.dst_port == PortList((PortNum(80), PortNum(443)))
    assert str(rule) == "allowlog ip outside any inside 80,443"


def test_parse_collapses_extra_whitespace():
    """Test fields may be separated by any run of whitespace"""
    rule, collector = _parse("deny   tcp\toutside any  inside   22")
    assert collector.is_clean()
    assert rule.dst_port == PortNum(22)
    assert rule.position.columns == (0, 7, 11, 19, 24, 33)


@pytest.mark.parametrize("text, count", [
    ("allow tcp outside any", 4),
    ("short rule.", 2),
    ("this is an extra long rule, ok.", 7),
    ("", 0),
])
def test_rule_length_error(text, count):
    """Test a wrong field count is one RuleLengthErr at column 0"""
    rule, collector = _parse(text)

    assert rule is None
    assert collector.count() == 1
    diagnostic = collector.sorted()[0]
    assert diagnostic.kind == ErrorKind.RULE_LENGTH
    assert diagnostic.column == 0
    assert diagnostic.detail == f"expected 6 fields, got {count}"


def test_action_parse_error():
    """Test an unknown action is reported on the action field"""
    rule, collector = _parse("[failhere] ip inside any outside any")
    assert rule is None
    assert collector.kinds() == [ErrorKind.ACTION_INVALID]
    assert "[failhere]" in collector.sorted()[0].detail


def test_action_is_case_sensitive():
    """Test actions must be lowercase"""
    rule, collector = _parse("Allow ip inside any outside any")
    assert collector.kinds() == [ErrorKind.ACTION_INVALID]


@pytest.mark.parametrize("text, protocol", [
    ("TCP", Protocol.TCP),
    ("Udp", Protocol.UDP),
    ("ICMP", Protocol.ICMP),
])
def test_protocol_is_case_insensitive(text, protocol):
    """Test protocols match regardless of case"""
    rule, collector = _parse(f"allow {text} a any b 22")
    assert collector.is_clean()
    assert rule.protocol == protocol
    assert str(rule) == f"allow {protocol.value} a any b 22"


def test_huge_port_is_recorded_not_raised():
    """Test a port field with thousands of digits becomes a SrcPortInvalid"""
    rule, collector = _parse("allow tcp a " + "9" * 5000 + " b 22")
    assert rule is None
    assert collector.kinds() == [ErrorKind.SRC_PORT_INVALID]
    assert collector.sorted()[0].column == 12


def test_protocol_parse_error():
    """Test an unknown protocol is reported at the protocol column"""
    rule, collector = _parse("allow icmps outside any inside 8")

    assert rule is None
    diagnostic = collector.sorted()[0]
    assert diagnostic.kind == ErrorKind.PROTOCOL_UNSUPPORTED
    assert diagnostic.column == 6
    assert "icmps" in diagnostic.detail


def test_src_port_invalid():
    """Test a malformed source port uses the source-specific kind"""
    rule, collector = _parse("deny ip inside [failhere] outside any")
    assert collector.kinds() == [ErrorKind.SRC_PORT_INVALID]
    assert collector.sorted()[0].column == 15


def test_dst_port_invalid():
    """Test a malformed destination port uses the destination-specific kind"""
    rule, collector = _parse("deny ip inside any outside [failhere]")
    assert collector.kinds() == [ErrorKind.DST_PORT_INVALID]


def test_every_bad_field_is_reported():
    """Test one line can surface an error for each malformed field"""
    rule, collector = _parse("permit icmps inside 22s outside 70000")

    assert rule is None
    assert collector.kinds() == [
        ErrorKind.ACTION_INVALID,
        ErrorKind.PROTOCOL_UNSUPPORTED,
        ErrorKind.SRC_PORT_INVALID,
        ErrorKind.DST_PORT_INVALID,
    ]
    assert [d.column for d in collector] == [0, 7, 20, 32]


def test_inverted_range_passes_syntax():
    """Test inverted ranges are not a parse error"""
    rule, collector = _parse("denylog udp outside 200-100 inside any")
    assert collector.is_clean()
    assert rule.src_port == PortRange(200, 100)


def test_parse_rules_numbers_lines_and_skips_bad_ones():
    """Test plain strings are numbered from 1 and bad lines are dropped"""
    collector = DiagnosticsCollector()
    rules = parse_rules([
        "allow udp outside any inside 161,162",
        "allow udp outside any inside 161,,162",
        "allow tcp inside 22,*,443,9000-9010 outside any",
    ], "rules.txt", collector)

    assert len(rules) == 1
    assert [(d.line, d.kind) for d in collector] == [
        (2, ErrorKind.DST_PORT_INVALID),
        (3, ErrorKind.SRC_PORT_INVALID),
    ]


def test_parse_rules_applies_column_offset():
    """Test RuleLine columns shift every reported column"""
    collector = DiagnosticsCollector()
    parse_rules([RuleLine("allow tcp a any b 22s", 7, 6)], "acl.yaml", collector)

    diagnostic = collector.sorted()[0]
    assert diagnostic.line == 7
    assert diagnostic.column == 6 + 18
