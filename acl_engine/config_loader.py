"""
Configuration Loader

Reads the rule-set YAML, the platform capability directory, and plain
line-oriented rule files, and turns them into the in-memory shapes the
validator consumes. Rules and devices keep the YAML line and column they were
declared at so diagnostics point back into the file.

Loading problems raise ConfigError; they are not validation diagnostics.
"""

import os
import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple

import yaml

from acl_parser.rule_parser import RuleLine
from acl_engine.capability import CapabilityMatrix, Device, PlatformCapability
from acl_engine.errors import ConfigError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = ('.yaml', '.yml')


# ============================================================================
# Environment
# ============================================================================

@dataclass
class EnvSettings:
    """Directory locations, overridable from the environment"""
    platforms: str = "./platforms"
    rulesets: str = "./acls"
    templates: str = "./tmpl"

    @classmethod
    def from_env(cls, environ=None) -> 'EnvSettings':
        environ = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            platforms=_env_path(environ, "AM3K_PLATFORMS_PATH", defaults.platforms),
            rulesets=_env_path(environ, "AM3K_RULESETS_PATH", defaults.rulesets),
            templates=_env_path(environ, "AM3K_TEMPLATES_PATH", defaults.templates),
        )


def _env_path(environ, name: str, default: str) -> str:
    value = environ.get(name)
    if not value:
        return default
    return value.rstrip('/') or '/'


ENV_HELP = """Environment:
    AM3K_PLATFORMS_PATH     Directory of platform definitions. Defaults to "./platforms".
    AM3K_RULESETS_PATH      Directory of ACL definitions. Defaults to "./acls".
    AM3K_TEMPLATES_PATH     Directory of template definitions. Defaults to "./tmpl".
"""


# ============================================================================
# Loaded Shapes
# ============================================================================

@dataclass
class DeploymentSettings:
    """Per-direction deployment knobs passed through to the renderer"""
    src_filters: List[str] = field(default_factory=list)
    dst_filters: List[str] = field(default_factory=list)
    deployable: bool = False
    established: bool = False
    default: str = "deny"
    transform_src: bool = False
    transform_dst: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filters': {'src': list(self.src_filters), 'dst': list(self.dst_filters)},
            'deployable': self.deployable,
            'established': self.established,
            'default': self.default,
            'transforms': {'src': self.transform_src, 'dst': self.transform_dst},
        }


@dataclass
class RuleSetConfig:
    """A loaded rule-set file"""
    source: str
    rules: List[RuleLine] = field(default_factory=list)
    devices: List[Device] = field(default_factory=list)
    ingress: DeploymentSettings = field(default_factory=DeploymentSettings)
    egress: DeploymentSettings = field(default_factory=DeploymentSettings)
    device_regex: Optional[Pattern] = None

    def deployment_context(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'ingress': self.ingress.to_dict(),
            'egress': self.egress.to_dict(),
        }


# ============================================================================
# Platform Directory
# ============================================================================

def load_platform_file(path) -> PlatformCapability:
    """Load one platform definition"""
    data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError("platform file must be a mapping", str(path))

    make = _require(data, 'make', str, path)
    device_name = _require(data, 'device_name', str, path)
    models = _require(data, 'models', list, path)
    interfaces = _require(data, 'interfaces', list, path)

    try:
        return PlatformCapability.build(
            make=make,
            models=[str(m) for m in models],
            interface_patterns=[str(p) for p in interfaces],
            device_name_pattern=device_name,
        )
    except re.error as e:
        raise ConfigError(f"invalid pattern: {e}", str(path))


def load_capability_matrix(directory) -> CapabilityMatrix:
    """Load every platform file in `directory` into one matrix"""
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigError("platforms directory not found", str(directory))

    platforms = []
    seen: Dict[str, Path] = {}
    for path in sorted(directory.iterdir()):
        if path.suffix not in YAML_SUFFIXES or not path.is_file():
            continue
        platform = load_platform_file(path)
        if platform.make in seen:
            raise ConfigError(
                f"make '{platform.make}' already defined in {seen[platform.make]}", str(path)
            )
        seen[platform.make] = path
        logger.debug("Loaded platform '%s' from %s", platform.make, path)
        platforms.append(platform)

    logger.info("Loaded %d platform definition(s) from %s", len(platforms), directory)
    return CapabilityMatrix(platforms)


# ============================================================================
# Rule-set Files
# ============================================================================

def resolve_config_path(name: str, settings: EnvSettings) -> Path:
    """Use `name` as given if it exists, else look for it under the rulesets directory"""
    path = Path(name)
    if path.exists():
        return path
    candidate = Path(settings.rulesets) / name
    if candidate.exists():
        return candidate
    raise ConfigError("file not found", name)


def load_config(path) -> RuleSetConfig:
    """Load either a YAML rule set or a plain rule file, by suffix"""
    path = Path(path)
    if path.suffix in YAML_SUFFIXES:
        return load_ruleset_config(path)
    return RuleSetConfig(source=str(path), rules=load_rule_file(path))


def load_rule_file(path) -> List[RuleLine]:
    """One rule per line; blank lines and # comments are skipped"""
    text = _read_text(path)
    rules = []
    for index, line in enumerate(text.splitlines()):
        clean_line = line.split('#')[0].rstrip()
        if not clean_line.strip():
            continue
        column = len(clean_line) - len(clean_line.lstrip())
        rules.append(RuleLine(clean_line.strip(), index + 1, column))
    return rules


def load_ruleset_config(path) -> RuleSetConfig:
    """Load a YAML rule set with line positions for rules and devices"""
    text = _read_text(path)
    source = str(path)

    try:
        data = yaml.safe_load(text)
        root = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", source)

    if not isinstance(data, dict):
        raise ConfigError("rule set must be a mapping", source)

    ruleset = _require(data, 'ruleset', dict, source)
    ruleset_node = _child(root, 'ruleset')

    generic = _require(ruleset, 'generic', list, source, 'ruleset')
    generic_node = _child(ruleset_node, 'generic')
    rules = []
    for value, (line, column) in zip(generic, _item_locations(generic_node)):
        rules.append(RuleLine('' if value is None else str(value), line, column))

    config = RuleSetConfig(source=source, rules=rules)

    deployment = ruleset.get('deployment')
    if deployment is not None:
        if not isinstance(deployment, dict):
            raise ConfigError("'ruleset.deployment' must be a mapping", source)
        _load_deployment(config, deployment, _child(ruleset_node, 'deployment'))

    defaults = data.get('defaults') or {}
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping", source)
    if defaults.get('device_regex'):
        try:
            config.device_regex = re.compile(str(defaults['device_regex']))
        except re.error as e:
            raise ConfigError(f"invalid 'defaults.device_regex': {e}", source)

    logger.info("Loaded %d rule(s) and %d device(s) from %s",
                len(config.rules), len(config.devices), source)
    return config


def _load_deployment(config: RuleSetConfig, deployment: Dict[str, Any], node):
    source = config.source
    parent = 'ruleset.deployment'
    make = _require(deployment, 'platform', str, source, parent)
    model = str(_require(deployment, 'model', (str, int), source, parent))
    devicelist = _require(deployment, 'devicelist', list, source, parent)

    ingress = _optional(deployment, 'ingress', dict, source, parent)
    egress = _optional(deployment, 'egress', dict, source, parent)

    ingress_interfaces = [str(i) for i in _optional(ingress, 'interfaces', list, source, f'{parent}.ingress')]
    egress_interfaces = [str(i) for i in _optional(egress, 'interfaces', list, source, f'{parent}.egress')]
    ingress_locations = _item_locations(_child(_child(node, 'ingress'), 'interfaces'))
    egress_locations = _item_locations(_child(_child(node, 'egress'), 'interfaces'))

    config.ingress = _deployment_settings(ingress, source, f'{parent}.ingress')
    config.egress = _deployment_settings(egress, source, f'{parent}.egress')

    for hostname, (line, column) in zip(devicelist, _item_locations(_child(node, 'devicelist'))):
        config.devices.append(Device(
            hostname=str(hostname),
            make=make,
            model=model,
            ingress_interfaces=tuple(ingress_interfaces),
            egress_interfaces=tuple(egress_interfaces),
            source=source,
            line=line,
            column=column,
            ingress_locations=tuple(ingress_locations),
            egress_locations=tuple(egress_locations),
        ))


def _deployment_settings(direction: Dict[str, Any], source: str, parent: str) -> DeploymentSettings:
    filters = _optional(direction, 'filters', dict, source, parent)
    transforms = _optional(direction, 'transforms', dict, source, parent)
    return DeploymentSettings(
        src_filters=[str(f) for f in _optional(filters, 'src', list, source, f'{parent}.filters')],
        dst_filters=[str(f) for f in _optional(filters, 'dst', list, source, f'{parent}.filters')],
        deployable=bool(direction.get('deployable', False)),
        established=bool(direction.get('established', False)),
        default=str(direction.get('default', 'deny')),
        transform_src=bool(transforms.get('src', False)),
        transform_dst=bool(transforms.get('dst', False)),
    )


# ============================================================================
# Helper Methods
# ============================================================================

def _read_text(path) -> str:
    try:
        with open(path, 'r') as f:
            return f.read()
    except OSError as e:
        raise ConfigError(f"cannot read file: {e.strerror or e}", str(path))


def _read_yaml(path) -> Any:
    try:
        return yaml.safe_load(_read_text(path))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", str(path))


def _require(mapping: Dict[str, Any], key: str, kind, path, parent: str = None) -> Any:
    """Fetch a required key and check its type"""
    name = f"{parent}.{key}" if parent else key
    if key not in mapping or mapping[key] is None:
        raise ConfigError(f"missing required key '{name}'", str(path))
    value = mapping[key]
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ConfigError(f"'{name}' has the wrong type", str(path))
    return value


def _optional(mapping: Dict[str, Any], key: str, kind, path, parent: str = None) -> Any:
    """Fetch an optional list or mapping key, empty when missing"""
    value = mapping.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        name = f"{parent}.{key}" if parent else key
        raise ConfigError(f"'{name}' has the wrong type", str(path))
    return value


def _child(node, key: str):
    """Value node for `key` in a mapping node, or None"""
    if not isinstance(node, yaml.MappingNode):
        return None
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            return value_node
    return None


def _item_locations(node) -> List[Tuple[int, int]]:
    """1-based line and 0-based column of each item of a sequence node"""
    if not isinstance(node, yaml.SequenceNode):
        return []
    locations = []
    for item in node.value:
        mark = item.start_mark
        column = mark.column
        # Quoted scalars start at the quote
        if isinstance(item, yaml.ScalarNode) and item.style in ("'", '"'):
            column += 1
        locations.append((mark.line + 1, column))
    return locations
