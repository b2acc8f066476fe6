#!/usr/bin/env python3
"""
(am3k) Access Control List Manager 3000

Validates a rule-set file against the platform capability matrix, reports
every problem found, and optionally writes the expanded rule set for the
template renderer.

Exit status: 0 if the rule set is clean, 1 if issues were found, 2 if the
configuration could not be loaded.
"""

import argparse
import json
import sys

import yaml

from acl_parser.diagnostics import print_validation_report
from acl_engine.acl_validator import AclValidator
from acl_engine.capability import CapabilityMatrix
from acl_engine.config_loader import (
    ENV_HELP, EnvSettings, load_capability_matrix, load_config, resolve_config_path
)
from acl_engine.errors import ConfigError
from acl_engine.logging_config import level_from_flags, setup_logging

EXIT_CLEAN = 0
EXIT_ISSUES = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='am3k',
        description='(am3k) Access Control List Manager 3000 - validate and expand ACL rule sets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=ENV_HELP + """
Examples:
  %(prog)s edge.yaml                  # Validate a rule set
  %(prog)s edge.yaml --quiet          # Only print diagnostics and the summary
  %(prog)s edge.yaml --json           # Output as JSON
  %(prog)s edge.yaml -o expanded.yaml # Write the expanded rule set when clean
        """
    )

    parser.add_argument(
        'config',
        metavar='FILE',
        help='Rule-set YAML file, or a plain file with one rule per line'
    )

    parser.add_argument(
        '-p', '--platforms',
        metavar='DIR',
        help='Platform definitions directory (overrides AM3K_PLATFORMS_PATH)'
    )

    parser.add_argument(
        '-o', '--output',
        metavar='FILE',
        help='Write the validated, expanded rule set as YAML'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Quiet mode - only show diagnostics and the summary line'
    )

    parser.add_argument(
        '-j', '--json',
        action='store_true',
        help='Output validation results as JSON'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )

    loglevel = parser.add_mutually_exclusive_group()
    loglevel.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print verbose information'
    )
    loglevel.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Print debug information'
    )

    return parser


def run(args: argparse.Namespace, settings: EnvSettings) -> int:
    """Load, validate, report; returns the exit status"""
    try:
        config = load_config(resolve_config_path(args.config, settings))
        if config.devices:
            matrix = load_capability_matrix(args.platforms or settings.platforms)
        else:
            matrix = CapabilityMatrix([])
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    validator = AclValidator(matrix, config.device_regex)
    report = validator.validate(config.devices, config.rules, config.source)
    diagnostics = report.diagnostics

    if args.json:
        output = diagnostics.to_dict()
        output['rule_count'] = len(report.rules)
        output['expanded_rule_count'] = len(report.expanded_rules)
        print(json.dumps(output, indent=2))
    elif args.quiet:
        if not diagnostics.is_clean():
            print(diagnostics.render())
        print(diagnostics.summary())
    else:
        print("=" * 60)
        print(f"am3k - Validating: {config.source}")
        print("=" * 60)
        print_validation_report(diagnostics, color=not args.no_color)

        print("\n" + "=" * 60)
        print("Summary:")
        print(f"  Valid: {report.is_clean}")
        print(f"  Devices: {len(report.devices)}")
        print(f"  Rules: {len(report.rules)}")
        print(f"  Expanded rules: {len(report.expanded_rules)}")
        print(f"  Errors: {diagnostics.count()}")
        print("=" * 60)

    if not report.is_clean:
        return EXIT_ISSUES

    if args.output:
        context = report.render_context(config.deployment_context())
        try:
            with open(args.output, 'w') as f:
                yaml.safe_dump(context, f, sort_keys=False)
        except OSError as e:
            print(f"Error: {args.output}: cannot write output: {e.strerror or e}", file=sys.stderr)
            return EXIT_CONFIG
        if not args.quiet and not args.json:
            print(f"\n✓ Expanded rule set written to {args.output}")

    return EXIT_CLEAN


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level_from_flags(args.verbose, args.debug))
    return run(args, EnvSettings.from_env())


if __name__ == "__main__":
    sys.exit(main())
