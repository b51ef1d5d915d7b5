"""
Command-line front end for the AI provider gateway.

Subcommands:
1. chat       Send a prompt through the fallback chain and print the answer envelope
2. providers  List every provider (or one provider) with configuration status and call statistics
3. configure  Store credential, endpoint, model or rate limits for a provider
4. primary    Set the primary provider
5. remove     Clear a provider's stored configuration
6. test       Send a minimal request to verify a provider's configuration

Every command prints the resulting envelope as JSON and exits with status 0
on success and 1 on error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from gateway.ai_gateway import AIGateway, build_gateway, load_settings
from gateway.configurator import ProviderConfigurator
from gateway.envelope import Envelope
from gateway.store import YamlConfigurationStore
from modules.config_loader import create_config_loader
from modules.constants import MAX_TEMPERATURE, MIN_TEMPERATURE
from modules.error_handler import ConfigurationError, handle_critical_error
from modules.logger import set_log_level, setup_file_handler, setup_logger
from modules.types import GatewaySettings

logger = setup_logger(__name__)

_LOGGER_PREFIXES = ("gateway", "modules", "__main__")


def _positive_int(value: str) -> int:
    """Argparse type validator for positive integers."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return parsed


def _temperature(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a number") from exc
    if not MIN_TEMPERATURE <= parsed <= MAX_TEMPERATURE:
        raise argparse.ArgumentTypeError(f"must be between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}")
    return parsed


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Route chat requests to external AI providers with fallback, rate limiting and retries",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default=None,
        help="Directory holding gateway.yaml and providers.yaml. Overrides AI_GATEWAY_CONFIG_DIR.",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="Path of the YAML settings store. Overrides store.path in gateway.yaml.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show informational and debug logs on the console.",
    )
    parser.add_argument(
        "--no-env-credentials",
        action="store_true",
        help="Do not seed provider credentials from *_API_KEY environment variables.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Send a prompt and print the response envelope.")
    chat.add_argument("prompt", type=str, help="User message to send.")
    chat.add_argument("--system", type=str, default=None, help="Optional system message.")
    chat.add_argument("--provider", type=str, default=None, help="Preferred provider id (falls back if unconfigured).")
    chat.add_argument("--model", type=str, default=None, help="Model override for this request.")
    chat.add_argument("--max-tokens", type=_positive_int, default=None, help="Completion token limit.")
    chat.add_argument("--temperature", type=_temperature, default=None, help="Sampling temperature (0-2).")
    chat.add_argument("--max-retries", type=_non_negative_int, default=None, help="Attempt budget for the call.")
    chat.add_argument("--timeout", type=_positive_float, default=None, help="Deadline in seconds for the whole call.")

    providers = subparsers.add_parser("providers", help="List providers with status and statistics.")
    providers.add_argument("provider_id", nargs="?", default=None, help="Show a single provider.")

    configure = subparsers.add_parser("configure", help="Store settings for a provider.")
    configure.add_argument("provider_id", help="Provider id from the catalog.")
    configure.add_argument("--credential", type=str, default=None, help="API key or token.")
    configure.add_argument("--endpoint", type=str, default=None, help="Base URL of the provider API.")
    configure.add_argument("--model", type=str, default=None, help="Default model for this provider.")
    configure.add_argument("--rate-limit-per-minute", type=_positive_int, default=None, help="Calls allowed per minute.")
    configure.add_argument("--rate-limit-per-hour", type=_positive_int, default=None, help="Calls allowed per hour.")

    primary = subparsers.add_parser("primary", help="Set the primary provider.")
    primary.add_argument("provider_id", help="Provider id from the catalog.")

    remove = subparsers.add_parser("remove", help="Clear a provider's stored settings.")
    remove.add_argument("provider_id", help="Provider id from the catalog.")

    test = subparsers.add_parser("test", help="Verify a provider with a minimal request.")
    test.add_argument("provider_id", help="Provider id from the catalog.")

    return parser


def _configure_logging(settings: GatewaySettings, verbose: bool) -> None:
    """Apply the configured log level (and optional log file) to the gateway's loggers."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)
    names = [
        name
        for name in list(logging.Logger.manager.loggerDict)
        if name.startswith(_LOGGER_PREFIXES)
    ]
    for name in names:
        target = logging.getLogger(name)
        if verbose or settings.verbose:
            set_log_level(target, level)
        else:
            target.setLevel(level)
        if settings.log_file:
            setup_file_handler(target, settings.log_file)


def _chat_messages(args: argparse.Namespace) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if args.system:
        messages.append({"role": "system", "content": args.system})
    messages.append({"role": "user", "content": args.prompt})
    return messages


def _chat_options(args: argparse.Namespace) -> Dict[str, Any]:
    options = {
        "provider_hint": args.provider,
        "model": args.model,
        "max_tokens": args.max_tokens,
        "temperature": args.temperature,
        "max_retries": args.max_retries,
        "timeout": args.timeout,
    }
    return {key: value for key, value in options.items() if value is not None}


def _configure_settings(args: argparse.Namespace) -> Dict[str, Any]:
    settings = {
        "credential": args.credential,
        "endpoint": args.endpoint,
        "model": args.model,
        "rate_limit_per_minute": args.rate_limit_per_minute,
        "rate_limit_per_hour": args.rate_limit_per_hour,
    }
    return {key: value for key, value in settings.items() if value is not None}


def run_command(args: argparse.Namespace, gateway: AIGateway, configurator: ProviderConfigurator) -> Envelope:
    """Dispatch a parsed command and return its envelope."""
    if args.command == "chat":
        return gateway.chat(_chat_messages(args), _chat_options(args))
    if args.command == "providers":
        if args.provider_id:
            return configurator.status(args.provider_id)
        return configurator.list_providers()
    if args.command == "configure":
        return configurator.configure(args.provider_id, _configure_settings(args))
    if args.command == "primary":
        return configurator.set_primary(args.provider_id)
    if args.command == "remove":
        return configurator.remove(args.provider_id)
    if args.command == "test":
        return gateway.test_connection(args.provider_id)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config_loader = create_config_loader(Path(args.config_dir).expanduser() if args.config_dir else None)
    settings = load_settings(config_loader)
    if args.store:
        settings = replace(settings, store_path=args.store)
    _configure_logging(settings, args.verbose)

    try:
        store = YamlConfigurationStore(settings.store_path)
        store.snapshot()
    except ConfigurationError as exc:
        logger.error(str(exc))
        return 2

    gateway = build_gateway(settings=settings, store=store)
    configurator = ProviderConfigurator.from_gateway(gateway)
    if not args.no_env_credentials:
        seeded = configurator.seed_credentials_from_env()
        if seeded:
            logger.info(f"Seeded credentials from environment for: {', '.join(seeded)}")

    envelope = run_command(args, gateway, configurator)
    print(json.dumps(envelope.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 0 if envelope.ok else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C). Exiting.")
        sys.exit(130)
    except Exception as exc:
        handle_critical_error(exc, "main execution flow", exit_on_error=True)
