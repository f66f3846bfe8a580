"""Command-line entry point: analyze evidence files and optionally ask follow-up questions."""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence

from .models.evidence import Language, ProviderKind, ProviderSelector, find_model
from .orchestration.orchestrator import CrashReportOrchestrator
from .plugins.evidence_normalizer import EvidenceNormalizer
from .utils.config import Config
from .utils.errors import CrashAnalysisError, user_message_key
from .utils.hashing import report_hash
from .utils.logging import setup_logging, with_context

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="crashgenius",
        description="Generate a structured damage report from crash photos and documents",
    )
    parser.add_argument("files", nargs="+", help="Evidence files; the first one is the bounding-box reference")
    parser.add_argument("--context", default="", help="Free-text incident description")
    parser.add_argument("--language", choices=[lang.value for lang in Language], default=Language.EN.value)
    parser.add_argument("--model", help="Model id from the catalogue (defaults to the configured provider)")
    parser.add_argument("--api-key", help="API key for providers that do not read one from the environment")
    parser.add_argument("--ask", action="append", default=[], help="Follow-up question; may be repeated")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    return parser.parse_args(argv)


def _selector(args: argparse.Namespace, config: Config) -> ProviderSelector:
    if args.model:
        model = find_model(args.model)
        if model is None:
            raise SystemExit(f"Unknown model: {args.model}")
        return model.selector(args.api_key)

    kind = ProviderKind.parse(config.default_provider)
    model_id = config.google.model_id if kind is ProviderKind.GOOGLE else config.mistral.model_id
    return ProviderSelector(kind=kind, model_id=model_id, api_key=args.api_key)


@with_context(component="cli")
async def _run(args: argparse.Namespace, config: Config) -> int:
    selector = _selector(args, config)
    language = Language.parse(args.language)
    evidence = EvidenceNormalizer().normalize_many(args.files)

    async with CrashReportOrchestrator(config) as orchestrator:
        report = await orchestrator.generate_crash_report(evidence, args.context, language, selector)
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        print(f"\nReport hash: {report_hash(report)}")

        if not args.ask:
            return 0

        session = orchestrator.create_chat_session(report, evidence, language, selector)
        for question in args.ask:
            print(f"\n> {question}")
            async for fragment in session.send_message_stream(question):
                sys.stdout.write(fragment)
                sys.stdout.flush()
            print()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = _parse_args(argv)

    try:
        config = Config.load(args.config)
        setup_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            log_file=config.logging.file or None,
        )
        return asyncio.run(_run(args, config))
    except CrashAnalysisError as e:
        logger.error(str(e))
        print(f"Error [{user_message_key(e)}]: {e.context.message}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
