#!/usr/bin/env python3
"""
Class Embedding Generator

Backfills class description embeddings with the configured provider and
writes them to the gym store and the vector index.

Usage:
    # Set your OpenAI API key
    export OPENAI_API_KEY="sk-..."

    # Embed every active class that has no embedding yet
    python -m server.scripts.generate_embeddings

    # Specific classes (by ID)
    python -m server.scripts.generate_embeddings --ids c-yoga-flow c-hiit

    # Regenerate all (force overwrite)
    python -m server.scripts.generate_embeddings --force
"""

import argparse
import asyncio
import logging
import sys

from ..config import ServerConfig, configure_logging
from ..state import AppState

logger = logging.getLogger(__name__)


async def run(config: ServerConfig, class_ids, force: bool) -> dict:
    state = AppState.from_config(config)
    await state.open()
    try:
        return await state.maintenance.reembed_classes(class_ids, force=force)
    finally:
        await state.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate embeddings for gym classes")
    parser.add_argument("--ids", nargs="+", help="Only these class ids")
    parser.add_argument("--force", action="store_true", help="Regenerate existing embeddings")
    args = parser.parse_args()

    config = ServerConfig.from_env()
    configure_logging(config.log_level)
    config.cache_warming_enabled = False
    if not config.openai_api_key:
        logger.error("[embeddings] OPENAI_API_KEY is not set")
        return 1

    counts = asyncio.run(run(config, args.ids, args.force))
    logger.info("[embeddings] embedded=%d skipped=%d failed=%d", counts["embedded"], counts["skipped"], counts["failed"])
    return 1 if counts["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
