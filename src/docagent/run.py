# run.py
# Entry point. Config and wiring only; no logic lives here.
#
# Swap models with --model or DOCAGENT_MODEL; any OpenRouter-supported
# model with tool calling works.
# https://openrouter.ai/models

import argparse
import logging
import sys
from pathlib import Path

from docagent import display
from docagent.agent import Agent, TransportError
from docagent.bridge import BridgeConfig, ProviderError, connect_providers, load_bridge_config
from docagent.config import Settings, configure_logging
from docagent.document import ManagedDocument
from docagent.interaction import ConsolePrompter
from docagent.manifest import ManifestError, find_package_root, read_manifest
from docagent.orchestrator import DocumentationTask, TaskFailed
from docagent.prompts import PromptBuilder
from docagent.sandbox import Sandbox
from docagent.tools import ToolConfigurationError, ToolRegistry, package_tools

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docagent",
        description="LLM-driven documentation for integration packages.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    update = commands.add_parser(
        "update-docs",
        help="Generate or revise _dev/build/docs/README.md with an LLM agent.",
    )
    update.add_argument("--package-root", type=Path, help="Package directory (default: nearest manifest.yml above cwd).")
    update.add_argument("--non-interactive", action="store_true", help="Run unattended and accept the first written README.")
    update.add_argument("--model", help="Model identifier (overrides DOCAGENT_MODEL).")
    update.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr.")
    return parser


def _build_registry(sandbox: Sandbox, settings: Settings) -> tuple[ToolRegistry, BridgeConfig | None]:
    bridge = load_bridge_config(settings.provider_config_path)
    sessions = connect_providers(bridge)
    try:
        return ToolRegistry(package_tools(sandbox), sessions), bridge
    except ToolConfigurationError:
        for session in sessions:
            session.close()
        raise


def update_docs(args: argparse.Namespace, settings: Settings) -> int:
    root = find_package_root(args.package_root or Path.cwd())
    if root is None:
        display.startup_failed("No package found: no manifest.yml in this directory or any parent.")
        return 1

    try:
        manifest = read_manifest(root)
    except ManifestError as exc:
        display.startup_failed(str(exc))
        return 1

    document = ManagedDocument(root)
    sandbox = Sandbox(root, document.allowed_dir.as_posix())

    try:
        registry, bridge = _build_registry(sandbox, settings)
    except ToolConfigurationError as exc:
        display.startup_failed(str(exc))
        return 1

    with registry:
        try:
            prompts = PromptBuilder.with_overrides(
                manifest,
                document.relative_path.as_posix(),
                bridge.initial_prompt_file if bridge else None,
                bridge.revision_prompt_file if bridge else None,
            )
        except OSError as exc:
            display.startup_failed(f"failed to read custom prompt: {exc}")
            return 1
        display.banner(settings.model, manifest.name, args.non_interactive, len(registry))

        try:
            agent = Agent.from_settings(settings, registry)
        except TransportError as exc:
            display.startup_failed(f"{exc} (is OPENROUTER_API_KEY set?)")
            return 1

        task = DocumentationTask(
            agent,
            document,
            prompts,
            root,
            prompter=None if args.non_interactive else ConsolePrompter(),
        )
        try:
            task.run(unattended=args.non_interactive)
        except TaskFailed as exc:
            logger.info("Task failed after %d attempts: %s", exc.report.attempts, exc)
            return 1
        except (TransportError, ProviderError) as exc:
            display.halt(str(exc))
            return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    overrides = {}
    if args.model:
        overrides["model"] = args.model
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level)
    logger.debug("Settings: model=%s base_url=%s config=%s", settings.model, settings.base_url, settings.provider_config_path)

    if args.command == "update-docs":
        return update_docs(args, settings)
    return 2


if __name__ == "__main__":
    sys.exit(main())
