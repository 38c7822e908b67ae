import asyncio
import dataclasses
import logging
import sys

import httpx

from directory_search.config.settings import settings
from directory_search.container import (
    configure_container,
    container,
    default_search_options,
)
from directory_search.core.models.search import SearchResponse
from directory_search.core.services.directory_service import DirectoryService
from directory_search.core.services.embedding_service import EmbeddingService
from directory_search.core.services.keyword_index_service import KeywordIndexService

logger = logging.getLogger(__name__)


def check_llm() -> bool:
    """Check that the OpenAI-compatible endpoint serves the configured model.

    Returns:
        True if model ready, False otherwise.
    """
    model = settings.llm_model
    base_url = settings.llm_base_url.rstrip("/")

    logger.info(f"Checking LLM model: {model}")

    try:
        resp = httpx.get(
            f"{base_url}/models",
            headers={"Authorization": f"Bearer {settings.llm_api_key}"},
            timeout=5,
        )
    except httpx.HTTPError as e:
        logger.error(f"LLM endpoint not reachable: {e}")
        return False

    if resp.status_code != 200:
        logger.error(f"LLM endpoint returned HTTP {resp.status_code}")
        return False

    models = [m.get("id", "") for m in resp.json().get("data", [])]
    if any(model in m for m in models):
        logger.info(f"Model {model} is ready")
        return True

    logger.error(f"Model {model} not found; available: {', '.join(models) or 'none'}")
    return False


def format_response(response: SearchResponse) -> str:
    lines = [f"{response.total_count} results (mode={response.mode}"
             f"{', fallback' if response.fallback else ''})"]

    for i, result in enumerate(response.results, 1):
        subtitle = result.headline or result.project_oneliner or ""
        lines.append(
            f"{i:>2}. [{result.type.value}] {result.title} "
            f"score={result.score:.3f} via {result.search_method.value}"
        )
        if subtitle:
            lines.append(f"    {subtitle}")

    if response.parsed_query is not None:
        lines.append(f"Parsed: {response.parsed_query.to_dict()}")
    timing = ", ".join(f"{k}={v}ms" for k, v in response.timing.to_dict().items())
    lines.append(f"Timing: {timing}")
    return "\n".join(lines)


def cmd_index(force: bool = False):
    """Index command - build keyword index and refresh embeddings."""
    configure_container(settings)

    stats = container.resolve(KeywordIndexService).build()
    logger.info(
        f"Keyword index: {stats.document_count} docs, {stats.term_count} terms"
    )

    count = container.resolve(EmbeddingService).refresh_all(force=force)
    logger.info(f"Embedded {count} records")


def cmd_search(query: str, projects_only: bool = False):
    """Search command - run one directory search and print the results."""
    configure_container(settings)
    directory = container.resolve(DirectoryService)

    options = None
    if projects_only:
        options = dataclasses.replace(
            default_search_options(settings), include_profiles=False
        )
    response = asyncio.run(directory.search(query, options))
    print(format_response(response))


def cmd_check_llm():
    if not check_llm():
        sys.exit(1)


def main():
    """CLI entry point."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    if len(sys.argv) < 2:
        print("Usage: python -m directory_search.presentation.cli <command>")
        print("Commands: index [--force], search [--projects] \"<query>\", check-llm")
        sys.exit(1)

    command = sys.argv[1]

    if command == "index":
        cmd_index(force="--force" in sys.argv[2:])
    elif command == "search":
        args = sys.argv[2:]
        projects_only = "--projects" in args
        cmd_search(
            " ".join(a for a in args if a != "--projects"), projects_only=projects_only
        )
    elif command == "check-llm":
        cmd_check_llm()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
