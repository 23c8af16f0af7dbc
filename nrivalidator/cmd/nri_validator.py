#!/usr/bin/env python3

"""
Command line front end of the NRI policy validator.

The runtime integration hands validation requests to ValidationManager
directly; this tool gives operators the same decisions offline, for checking
configurations and replaying requests captured from the runtime.
"""

import argparse
import sys
from typing import Any, List, Optional

import yaml

try:
    from yaml import CSafeDumper as SafeDumper
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeDumper, SafeLoader  # type: ignore

from nrivalidator import cgroup, config, validator_logging
from nrivalidator.common.exception import ConfigLoadError, ConfigValidationError, ValidationDenied
from nrivalidator.validation.manager import ValidationManager
from nrivalidator.validation.rules import ValidationConfig

logger = validator_logging.init_logging("cli")

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_ERROR = 2


def _describe(cfg: ValidationConfig) -> str:
    lines = [f"default validator: {'enabled' if cfg.enable_default_validator else 'disabled'}"]

    if cfg.policy is None:
        lines.append("policy: not configured")
    else:
        lines.append(f"policy: {len(cfg.policy.rules)} rules, defaultDeny={str(cfg.policy.default_deny).lower()}")

    if cfg.restrictions is None:
        lines.append("restrictions: not configured")
    else:
        r = cfg.restrictions
        lines.append(
            f"restrictions: {len(r.global_restrictions)} global, {len(r.plugin_restrictions)} per-plugin, "
            f"{len(r.global_pod_restrictions)} global pod restrictions"
        )

    return "\n".join(lines)


def _read_request(path: str) -> Any:
    if path == "-":
        return yaml.load(sys.stdin, Loader=SafeLoader)
    with open(path, encoding="utf-8") as f:
        return yaml.load(f, Loader=SafeLoader)


def check_config(args: argparse.Namespace) -> int:
    try:
        cfg = config.load_config(args.config)
    except (ConfigLoadError, ConfigValidationError) as e:
        logger.error("Invalid validation config: %s", e)
        return EXIT_DENIED

    print("Configuration is valid")
    print(_describe(cfg))
    return EXIT_ALLOWED


def validate(args: argparse.Namespace) -> int:
    try:
        cfg = config.load_config(args.config)
    except (ConfigLoadError, ConfigValidationError) as e:
        logger.error("Failed to load validation config: %s", e)
        return EXIT_ERROR

    try:
        request = _read_request(args.request)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to read request %s: %s", args.request, e)
        return EXIT_ERROR

    if not isinstance(request, dict):
        logger.error("Request %s is not a mapping", args.request)
        return EXIT_ERROR

    pod = request.get("pod") or {}
    container = request.get("container") or {}
    logger.debug(
        "Validating adjustment for container %s in pod %s/%s (cgroup %s)",
        container.get("name") or "",
        pod.get("namespace") or "",
        pod.get("name") or "",
        cgroup.get_container_cgroups_v2_abs_path(container) or "unknown",
    )

    manager = ValidationManager(cfg)
    try:
        manager.validate(request)
    except ValidationDenied as e:
        print(f"DENIED: {e}")
        return EXIT_DENIED

    print("ALLOWED")
    return EXIT_ALLOWED


def example_config(args: argparse.Namespace) -> int:
    if args.output:
        try:
            config.write_example_config(args.output)
        except OSError as e:
            logger.error("Failed to write config file %s: %s", args.output, e)
            return EXIT_ERROR
        logger.info("Example configuration written to %s", args.output)
    else:
        yaml.dump(config.example_config(), sys.stdout, Dumper=SafeDumper, sort_keys=False, default_flow_style=False)
    return EXIT_ALLOWED


def get_arg_parser() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--verbose", "-v", action="store_true", help="enable verbose logging")

    main_parser = argparse.ArgumentParser(prog="nri-validator", description=__doc__.strip().splitlines()[0])
    subparsers = main_parser.add_subparsers(title="actions")

    check_parser = subparsers.add_parser("check-config", help="validate a configuration", parents=[parent])
    check_parser.add_argument(
        "--config",
        "-c",
        help=f"configuration file or directory (default: ${config.CONFIG_ENV} or {config.CONFIG_FILES[0]})",
    )
    check_parser.set_defaults(func=check_config)

    validate_parser = subparsers.add_parser(
        "validate", help="evaluate a container adjustment validation request", parents=[parent]
    )
    validate_parser.add_argument("--config", "-c", help="configuration file or directory")
    validate_parser.add_argument("request", help="request document (YAML or JSON), '-' for stdin")
    validate_parser.set_defaults(func=validate)

    example_parser = subparsers.add_parser("example-config", help="print an example configuration", parents=[parent])
    example_parser.add_argument("--output", "-o", help="write to this file instead of stdout")
    example_parser.set_defaults(func=example_config)

    return main_parser


def main(argv: Optional[List[str]] = None) -> int:
    """nri-validator entry point."""
    parser = get_arg_parser()
    args = parser.parse_args(argv)

    if "func" not in args:
        parser.print_help()
        return EXIT_ERROR

    validator_logging.set_verbose(args.verbose)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
