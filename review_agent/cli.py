"""命令行入口：review-agent [directory]。"""

import argparse
import logging
import sys
from typing import List, Optional

from review_agent.config.settings import load_settings
from review_agent.domain.exceptions import BusinessError
from review_agent.flows.runner import run_review
from review_agent.infrastructure.logging.logger import log_event, setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review-agent",
        description="Let an LLM review and fix the source files under a directory.",
    )
    parser.add_argument("directory", nargs="?", default=".", help="target directory (default: current directory)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logger(settings)
    try:
        result = run_review(args.directory, settings)
    except BusinessError as e:
        log_event(logging.ERROR, f"Review failed: {e}", code=e.code, http_status=e.http_status)
        raise
    if not result.ok:
        print(result.text, file=sys.stderr)
        return 1
    print(result.text)
    return 0
