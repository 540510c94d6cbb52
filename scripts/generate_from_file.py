"""
Run the generation pipeline on a local text file and print the normalized batch as JSON.

No workspace access: nothing is read from or written to Notion. Uses the generation
backend configured in .env (ANTHROPIC_API_KEY + CLAUDE_MODEL_NAME, OPENAI_API_KEY,
or CHAT_API_BASE_URL).
Run from the repo root: python scripts/generate_from_file.py source.txt [--multi-pass] [--format json]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

logger = logging.getLogger(__name__)

from shortform.core import get_settings
from shortform.providers import GenerationConfigError, get_generation_provider
from shortform.services.generation import (
    ExtractionFailure,
    GenerationOrchestrator,
    PromptConfig,
    UpstreamGenerationFailure,
)


async def generate_from_file(path: Path, multi_pass: bool, single_pass_format: str, link: str) -> str:
    source_text = path.read_text(encoding="utf-8").strip()
    if not source_text:
        raise ValueError(f"{path} is empty")
    logger.info("Read %d chars from %s", len(source_text), path)
    orchestrator = GenerationOrchestrator(
        get_generation_provider(),
        multi_pass=multi_pass,
        single_pass_format=single_pass_format,
    )
    batch = await orchestrator.run(source_text, PromptConfig(link=link))
    logger.info("Generated %d concepts (mode=%s)", len(batch.concepts), batch.mode)
    return batch.model_dump_json(indent=2)


def main():
    s = get_settings()
    parser = argparse.ArgumentParser(description="Generate short-form concepts from a text file.")
    parser.add_argument("path", type=Path, help="Plain-text or markdown source document")
    parser.add_argument("--multi-pass", action="store_true", default=s.multi_pass_enabled,
                        help="Analyze/draft/assess/refine/enhance instead of a single call")
    parser.add_argument("--format", dest="single_pass_format", choices=("markdown", "json"),
                        default=s.single_pass_format, help="Expected single-pass output shape")
    parser.add_argument("--link", default=s.newsletter_link, help="CTA link token")
    parser.add_argument("--log-level", default="INFO", choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    try:
        output = asyncio.run(generate_from_file(args.path, args.multi_pass, args.single_pass_format, args.link))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        sys.exit(0)
    except GenerationConfigError as e:
        logger.error("%s", e)
        sys.exit(1)
    except (UpstreamGenerationFailure, ExtractionFailure) as e:
        logger.error("Generation failed: %s", e)
        sys.exit(2)
    print(output)


if __name__ == "__main__":
    main()
