"""Loading, merging and validation of the validator configuration.

The configuration is a YAML (or JSON) document:

    enableDefaultValidator: true
    defaultValidatorConfig: {...}
    policy:
      defaultDeny: true
      rules:
        - namespaces: ["dev-*"]
          plugins: ["*"]
          subjects: [{kind: User, name: developer}]
    restrictions:
      defaultAction: allow
      globalRestrictions: [{action: deny, capabilities: [namespaces]}]
      pluginRestrictions: [{pluginPattern: "untrusted-*", mutationRestrictions: [...], podRestrictions: [...]}]
      globalPodRestrictions: [{action: allow, selector: {namespaces: [...], labels: {...}, names: [...]}}]

It is read once at startup and turned into the frozen records of
nrivalidator.validation.rules. Loading a directory merges its files in
name order, a later file replacing whole top-level sections of the earlier
ones.
"""

import copy
import dataclasses
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import jsonschema
import yaml
from jsonschema.exceptions import best_match

try:
    from yaml import CSafeDumper as SafeDumper
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeDumper, SafeLoader  # type: ignore

from nrivalidator import validator_logging
from nrivalidator.capabilities import MutationCapability
from nrivalidator.common.exception import ConfigLoadError, ConfigValidationError
from nrivalidator.validation.providers.builtin import BuiltinValidator
from nrivalidator.validation.rules import (
    MutationRestriction,
    PluginRestriction,
    PodRestriction,
    PodSelector,
    PolicyRule,
    PolicySubject,
    RestrictionAction,
    RestrictionsConfig,
    SubjectKind,
    ValidationConfig,
    ValidationPolicy,
)

base_logger = validator_logging.init_logging("config")

# Environment variable overriding the configuration location
CONFIG_ENV = "NRI_VALIDATOR_CONFIG"

# Possible paths for the configuration, in order of priority
CONFIG_FILES = ["/etc/nri/validation.yaml", "/usr/etc/nri/validation.yaml"]

# File name patterns tried, one at a time, when loading a directory
CONFIG_DIR_PATTERNS = (".yaml", ".yml")

VALID_SUBJECT_KINDS = [k.value for k in SubjectKind]


def _nullable(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"anyOf": [schema, {"type": "null"}]}


_STRING_LIST = _nullable({"type": "array", "items": {"type": ["string", "null"]}})

# Only the shape of the document is checked here. Values (enumerations,
# empty lists, ...) are checked while building the records so the errors can
# point at the offending rule or restriction.
CONFIG_SCHEMA = {
    "type": ["object", "null"],
    "properties": {
        "enableDefaultValidator": _nullable({"type": "boolean"}),
        "defaultValidatorConfig": _nullable({"type": "object"}),
        "policy": _nullable(
            {
                "type": "object",
                "properties": {
                    "defaultDeny": _nullable({"type": "boolean"}),
                    "rules": _nullable({"type": "array", "items": {"$ref": "#/definitions/rule"}}),
                },
            }
        ),
        "restrictions": _nullable(
            {
                "type": "object",
                "properties": {
                    "defaultAction": _nullable({"type": "string"}),
                    "globalRestrictions": _nullable(
                        {"type": "array", "items": {"$ref": "#/definitions/mutation-restriction"}}
                    ),
                    "pluginRestrictions": _nullable(
                        {"type": "array", "items": {"$ref": "#/definitions/plugin-restriction"}}
                    ),
                    "globalPodRestrictions": _nullable(
                        {"type": "array", "items": {"$ref": "#/definitions/pod-restriction"}}
                    ),
                },
            }
        ),
    },
    "definitions": {
        "rule": {
            "type": "object",
            "properties": {
                "namespaces": _STRING_LIST,
                "plugins": _STRING_LIST,
                "subjects": _nullable(
                    {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "kind": _nullable({"type": "string"}),
                                "name": _nullable({"type": "string"}),
                            },
                        },
                    }
                ),
            },
        },
        "mutation-restriction": {
            "type": "object",
            "properties": {
                "action": _nullable({"type": "string"}),
                "capabilities": _STRING_LIST,
            },
        },
        "pod-restriction": {
            "type": "object",
            "properties": {
                "action": _nullable({"type": "string"}),
                "selector": _nullable(
                    {
                        "type": "object",
                        "properties": {
                            "namespaces": _STRING_LIST,
                            "labels": _nullable({"type": "object", "additionalProperties": {"type": "string"}}),
                            "names": _STRING_LIST,
                        },
                    }
                ),
            },
        },
        "plugin-restriction": {
            "type": "object",
            "properties": {
                "pluginPattern": _nullable({"type": "string"}),
                "mutationRestrictions": _nullable(
                    {"type": "array", "items": {"$ref": "#/definitions/mutation-restriction"}}
                ),
                "podRestrictions": _nullable({"type": "array", "items": {"$ref": "#/definitions/pod-restriction"}}),
            },
        },
    },
}


EXAMPLE_CONFIG: Dict[str, Any] = {
    "enableDefaultValidator": True,
    "defaultValidatorConfig": {
        "rejectOCIHookAdjustment": True,
    },
    "policy": {
        "defaultDeny": True,
        "rules": [
            {
                "namespaces": ["dev-*"],
                "plugins": ["*"],
                "subjects": [
                    {"kind": "User", "name": "developer-team"},
                    {"kind": "ServiceAccount", "name": "dev-runner"},
                ],
            },
            {
                "namespaces": ["production"],
                "plugins": ["cpu-manager", "memory-manager"],
                "subjects": [
                    {"kind": "Group", "name": "platform-team"},
                ],
            },
        ],
    },
    "restrictions": {
        "defaultAction": "allow",
        "globalRestrictions": [
            {"action": "deny", "capabilities": ["namespaces", "seccomp", "hooks"]},
        ],
        "pluginRestrictions": [
            {
                "pluginPattern": "untrusted-*",
                "mutationRestrictions": [
                    {"action": "allow", "capabilities": ["env", "annotations"]},
                ],
            },
        ],
    },
}


def _strings(value: Optional[List[Any]]) -> Tuple[str, ...]:
    return tuple("" if v is None else v for v in value or ())


def _parse_action(value: Optional[str], section: str, where: str) -> RestrictionAction:
    try:
        return RestrictionAction(value)
    except ValueError as e:
        raise ConfigValidationError(f"invalid {section}: {where}: invalid action: must be 'allow' or 'deny'") from e


def _parse_capabilities(values: Optional[List[Any]], where: str) -> Tuple[MutationCapability, ...]:
    capabilities = []
    for value in values or ():
        try:
            capabilities.append(MutationCapability(value))
        except ValueError as e:
            raise ConfigValidationError(f"invalid restrictions: {where}: invalid capability: {value}") from e
    return tuple(capabilities)


def _build_subject(raw: Mapping[str, Any], rule_index: int, subject_index: int) -> PolicySubject:
    where = f"rule {rule_index}, subject {subject_index}"
    kind = raw.get("kind") or ""
    if not kind:
        raise ConfigValidationError(f"invalid policy: {where}: kind cannot be empty")
    try:
        subject_kind = SubjectKind(kind)
    except ValueError as e:
        raise ConfigValidationError(
            f"invalid policy: {where}: invalid kind {kind}, must be one of: {VALID_SUBJECT_KINDS}"
        ) from e
    return PolicySubject(kind=subject_kind, name=raw.get("name") or "")


def _build_policy(raw: Mapping[str, Any]) -> ValidationPolicy:
    rules = []
    for i, raw_rule in enumerate(raw.get("rules") or ()):
        rules.append(
            PolicyRule(
                namespaces=_strings(raw_rule.get("namespaces")),
                plugins=_strings(raw_rule.get("plugins")),
                subjects=tuple(_build_subject(s, i, j) for j, s in enumerate(raw_rule.get("subjects") or ())),
            )
        )
    return ValidationPolicy(default_deny=bool(raw.get("defaultDeny")), rules=tuple(rules))


def _build_mutation_restriction(raw: Mapping[str, Any], where: str) -> MutationRestriction:
    return MutationRestriction(
        action=_parse_action(raw.get("action"), "restrictions", where),
        capabilities=_parse_capabilities(raw.get("capabilities"), where),
    )


def _build_pod_restriction(raw: Mapping[str, Any], where: str) -> PodRestriction:
    selector = raw.get("selector") or {}
    return PodRestriction(
        action=_parse_action(raw.get("action"), "restrictions", where),
        selector=PodSelector(
            namespaces=_strings(selector.get("namespaces")),
            labels=dict(selector.get("labels") or {}),
            names=_strings(selector.get("names")),
        ),
    )


def _build_restrictions(raw: Mapping[str, Any]) -> RestrictionsConfig:
    default_action = None
    if raw.get("defaultAction"):
        try:
            default_action = RestrictionAction(raw["defaultAction"])
        except ValueError as e:
            raise ConfigValidationError("invalid restrictions: invalid defaultAction: must be 'allow' or 'deny'") from e

    plugin_restrictions = []
    for i, raw_plugin in enumerate(raw.get("pluginRestrictions") or ()):
        plugin_restrictions.append(
            PluginRestriction(
                plugin_pattern=raw_plugin.get("pluginPattern") or "",
                mutation_restrictions=tuple(
                    _build_mutation_restriction(r, f"plugin restriction {i}, mutation restriction {j}")
                    for j, r in enumerate(raw_plugin.get("mutationRestrictions") or ())
                ),
                pod_restrictions=tuple(
                    _build_pod_restriction(r, f"plugin restriction {i}, pod restriction {j}")
                    for j, r in enumerate(raw_plugin.get("podRestrictions") or ())
                ),
            )
        )

    return RestrictionsConfig(
        default_action=default_action,
        global_restrictions=tuple(
            _build_mutation_restriction(r, f"global restriction {i}")
            for i, r in enumerate(raw.get("globalRestrictions") or ())
        ),
        plugin_restrictions=tuple(plugin_restrictions),
        global_pod_restrictions=tuple(
            _build_pod_restriction(r, f"global pod restriction {i}")
            for i, r in enumerate(raw.get("globalPodRestrictions") or ())
        ),
    )


def parse_config(data: Any, source: str = "<config>") -> ValidationConfig:
    """Turn a parsed YAML/JSON document into a ValidationConfig.

    Args:
        data: The document, as returned by the YAML loader
        source: Where the document came from, for error messages

    Raises:
        ConfigValidationError: If the document is malformed or holds an
                               unknown action, capability or subject kind
    """
    error = best_match(jsonschema.Draft7Validator(CONFIG_SCHEMA).iter_errors(data))
    if error is not None:
        location = "/".join(str(p) for p in error.absolute_path) or "<root>"
        raise ConfigValidationError(f"{source}: {location}: {error.message}")

    if data is None:
        return ValidationConfig()

    policy = data.get("policy")
    restrictions = data.get("restrictions")
    default_validator_config = data.get("defaultValidatorConfig")

    return ValidationConfig(
        policy=_build_policy(policy) if policy is not None else None,
        restrictions=_build_restrictions(restrictions) if restrictions is not None else None,
        enable_default_validator=bool(data.get("enableDefaultValidator")),
        default_validator_config=dict(default_validator_config) if default_validator_config is not None else None,
    )


def _validate_mutation_restriction(restriction: MutationRestriction) -> None:
    if not isinstance(restriction.action, RestrictionAction):
        raise ConfigValidationError("invalid action: must be 'allow' or 'deny'")

    if not restriction.capabilities:
        raise ConfigValidationError("capabilities cannot be empty")

    for capability in restriction.capabilities:
        if not isinstance(capability, MutationCapability):
            raise ConfigValidationError(f"invalid capability: {capability}")


def _validate_pod_restriction(restriction: PodRestriction) -> None:
    if not isinstance(restriction.action, RestrictionAction):
        raise ConfigValidationError("invalid action: must be 'allow' or 'deny'")


def _validate_policy(policy: ValidationPolicy) -> None:
    for i, rule in enumerate(policy.rules):
        if not rule.namespaces:
            raise ConfigValidationError(f"rule {i}: namespaces cannot be empty")

        if not rule.plugins:
            raise ConfigValidationError(f"rule {i}: plugins cannot be empty")

        if not rule.subjects:
            raise ConfigValidationError(f"rule {i}: subjects cannot be empty")

        for j, subject in enumerate(rule.subjects):
            if not subject.kind:
                raise ConfigValidationError(f"rule {i}, subject {j}: kind cannot be empty")
            if not subject.name:
                raise ConfigValidationError(f"rule {i}, subject {j}: name cannot be empty")
            if not isinstance(subject.kind, SubjectKind):
                raise ConfigValidationError(
                    f"rule {i}, subject {j}: invalid kind {subject.kind!r}, not a SubjectKind value"
                )


def _validate_restrictions(restrictions: RestrictionsConfig) -> None:
    if restrictions.default_action is not None and not isinstance(restrictions.default_action, RestrictionAction):
        raise ConfigValidationError("invalid defaultAction: must be 'allow' or 'deny'")

    for i, restriction in enumerate(restrictions.global_restrictions):
        try:
            _validate_mutation_restriction(restriction)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"global restriction {i}: {e}") from e

    for i, restriction in enumerate(restrictions.global_pod_restrictions):
        try:
            _validate_pod_restriction(restriction)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"global pod restriction {i}: {e}") from e

    for i, plugin_restriction in enumerate(restrictions.plugin_restrictions):
        if not plugin_restriction.plugin_pattern:
            raise ConfigValidationError(f"plugin restriction {i}: pluginPattern cannot be empty")

        for j, restriction in enumerate(plugin_restriction.mutation_restrictions):
            try:
                _validate_mutation_restriction(restriction)
            except ConfigValidationError as e:
                raise ConfigValidationError(f"plugin restriction {i}, mutation restriction {j}: {e}") from e

        for j, pod_restriction in enumerate(plugin_restriction.pod_restrictions):
            try:
                _validate_pod_restriction(pod_restriction)
            except ConfigValidationError as e:
                raise ConfigValidationError(f"plugin restriction {i}, pod restriction {j}: {e}") from e


def validate_config(config: Optional[ValidationConfig]) -> None:
    """Check the configuration for consistency.

    Raises:
        ConfigValidationError: Describing the first violation found, tagged
                               with the index of the offending rule or
                               restriction
    """
    if config is None:
        raise ConfigValidationError("config cannot be None")

    if config.policy is not None:
        try:
            _validate_policy(config.policy)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"invalid policy: {e}") from e

    if config.restrictions is not None:
        try:
            _validate_restrictions(config.restrictions)
        except ConfigValidationError as e:
            raise ConfigValidationError(f"invalid restrictions: {e}") from e

    if config.enable_default_validator:
        try:
            BuiltinValidator.check_options(config.default_validator_config or {})
        except ValueError as e:
            raise ConfigValidationError(f"invalid defaultValidatorConfig: {e}") from e


def load_config_from_file(path: str) -> ValidationConfig:
    """Load the configuration from a single YAML or JSON file.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed
        ConfigValidationError: If the document is malformed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.load(f, Loader=SafeLoader)
    except OSError as e:
        raise ConfigLoadError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"failed to parse config file {path}: {e}") from e

    return parse_config(data, source=path)


def list_config_files(directory: str) -> List[str]:
    """Return the configuration files of a directory, sorted by name.

    Files ending in ".yaml" are used if there are any, otherwise those
    ending in ".yml"; the two are never mixed.
    """
    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        raise ConfigLoadError(f"failed to list config files in {directory}: {e}") from e

    for extension in CONFIG_DIR_PATTERNS:
        files = [
            os.path.join(directory, f)
            for f in entries
            if f.endswith(extension) and os.path.isfile(os.path.join(directory, f))
        ]
        if files:
            return files

    raise ConfigLoadError(f"no config files found in {directory}")


def merge_configs(base: ValidationConfig, override: ValidationConfig) -> ValidationConfig:
    """Merge two configurations, the sections set in override replacing those of base.

    Sections are replaced as a whole, they are not merged key by key.
    enableDefaultValidator can only be switched on by override.
    """
    changes: Dict[str, Any] = {}
    if override.policy is not None:
        changes["policy"] = override.policy
    if override.restrictions is not None:
        changes["restrictions"] = override.restrictions
    if override.enable_default_validator:
        changes["enable_default_validator"] = True
    if override.default_validator_config is not None:
        changes["default_validator_config"] = override.default_validator_config
    return dataclasses.replace(base, **changes)


def load_config_from_dir(directory: str) -> ValidationConfig:
    """Load and merge every configuration file of a directory, in name order."""
    merged = ValidationConfig()

    for path in list_config_files(directory):
        try:
            config = load_config_from_file(path)
        except (ConfigLoadError, ConfigValidationError) as e:
            raise type(e)(f"failed to load config from {path}: {e}") from e

        base_logger.debug("Merging configuration from %s", path)
        merged = merge_configs(merged, config)

    return merged


def resolve_config_path(path: Optional[str] = None) -> str:
    """Find the configuration to use.

    An explicitly given path wins, followed by the path in the
    NRI_VALIDATOR_CONFIG environment variable and then by the first existing
    entry of CONFIG_FILES.
    """
    if path:
        return path

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        base_logger.info("Configuration path set through environment variable %s: %s", CONFIG_ENV, env_path)
        return env_path

    for candidate in CONFIG_FILES:
        if os.path.exists(candidate):
            return candidate

    raise ConfigLoadError(f"no configuration file found in {CONFIG_FILES}")


def load_config(path: Optional[str] = None) -> ValidationConfig:
    """Load and validate the configuration, from a file or a directory of files.

    This is the startup entry point: any error it raises is fatal.
    """
    resolved = resolve_config_path(path)

    if os.path.isdir(resolved):
        config = load_config_from_dir(resolved)
    else:
        config = load_config_from_file(resolved)

    validate_config(config)

    base_logger.info("Reading configuration from %s", resolved)
    return config


def example_config() -> Dict[str, Any]:
    """Return the example configuration document."""
    return copy.deepcopy(EXAMPLE_CONFIG)


def write_example_config(path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(example_config(), f, Dumper=SafeDumper, sort_keys=False, default_flow_style=False)
