"""
Task preprocessing.

Turns a free-form task into step instructions and, where the phrasing
allows, performs direct navigation before the AI agent runs:

- multi-line, numbered or multi-sentence tasks are split into steps
- "go to <site> and buy <product>" is rewritten into explicit sub-steps
- a leading "navigate to <site>" is executed directly and stripped
"""

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

COMMON_SITES = {
    "flipkart": "flipkart.com",
    "amazon": "amazon.com",
    "google": "google.com",
    "youtube": "youtube.com",
    "facebook": "facebook.com",
    "twitter": "twitter.com",
    "github": "github.com",
    "linkedin": "linkedin.com",
}

NAVIGATION_REPLACEMENT = "interact with the current page"

# "add" and "find" need an explicit cart; "buy" and "purchase" may end the task instead
ECOMMERCE_PATTERN = re.compile(
    r"(?:goto|go\s+to|visit)\s+(?P<site>[a-zA-Z0-9.-]+)\b.*?\b"
    r"(?:(?:add|buy|purchase|find)\s+(?:(?:a|an|the)\s+)?"
    r"(?P<carted>[a-zA-Z0-9][a-zA-Z0-9\s-]*?)"
    r"(?:\s+(?:and|to)\s+add(?:\s+it)?)?\s+(?:to|into)\s+(?:(?:my|the)\s+)?(?:cart|basket)\b.*"
    r"|(?:buy|purchase)\s+(?:(?:a|an|the)\s+)?"
    r"(?P<bought>[a-zA-Z0-9][a-zA-Z0-9\s-]*?)\s*[.!]?\s*)$",
    re.IGNORECASE | re.DOTALL,
)

NAVIGATION_PATTERN = re.compile(
    r"^\s*(?:(?:first|then|please)[\s,]+)?"
    r"(?:navigate\s+to|go\s+to|goto|visit|open)\s+(?P<target>\S+)",
    re.IGNORECASE,
)

URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)
DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z]{2,}(?::\d+)?(?:/\S*)?$",
    re.IGNORECASE,
)

LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+")
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
ABBREVIATIONS = {"mr", "mrs", "ms", "dr", "st", "jr", "sr", "vs", "etc", "e.g", "i.e", "no"}
LEADING_CONNECTOR = re.compile(r"^(?:[\s,.;]|and\b|then\b)+", re.IGNORECASE)


@dataclass
class NavigationTarget:
    """Direct navigation parsed from the start of an instruction."""
    url: str
    instruction: str
    has_remaining_work: bool


@dataclass
class PreprocessedTask:
    """What is left for the agent after preprocessing."""
    instruction: str
    navigated_url: Optional[str] = None
    needs_agent: bool = True


def _split_sentences(text: str) -> List[str]:
    """Split at sentence ends, but not after abbreviations or initials."""
    sentences = []
    start = 0
    for match in SENTENCE_BOUNDARY.finditer(text):
        word = text[start:match.start()].rsplit(None, 1)[-1].rstrip(".!?").lower()
        if len(word) <= 1 or word in ABBREVIATIONS:
            continue
        sentences.append(text[start:match.start()].strip())
        start = match.end()
    sentences.append(text[start:].strip())
    return [s for s in sentences if s]


def split_task_steps(task: str) -> List[str]:
    """
    Split a task into step instructions.

    Lines (with list markers removed) win over sentences; a task that is
    neither multi-line nor multi-sentence is a single step.
    """
    lines = [LIST_MARKER.sub("", line).strip() for line in task.splitlines()]
    lines = [line for line in lines if line]
    if len(lines) > 1:
        return lines

    text = lines[0] if lines else task.strip()
    sentences = _split_sentences(text)
    if len(sentences) > 1:
        return sentences
    return [text]


def rewrite_ecommerce_task(task: str) -> Optional[str]:
    """Decompose a shopping task into navigate, search, open and add-to-cart."""
    match = ECOMMERCE_PATTERN.search(task)
    if not match:
        return None

    site = match.group("site").rstrip(".")
    product = " ".join((match.group("carted") or match.group("bought")).split())
    logger.info(f"E-commerce task detected: {site} + {product}")
    return (
        f'First navigate to {site}, then search for "{product}", '
        f"then click on a suitable product result, and finally add it to cart"
    )


def _normalize_target(target: str) -> Optional[str]:
    target = target.rstrip(".,;:!?")
    if not target:
        return None

    site = COMMON_SITES.get(target.lower())
    if site:
        return f"https://{site}"
    if URL_PATTERN.match(target):
        return target
    if DOMAIN_PATTERN.match(target):
        return f"https://{target}"
    return None


def parse_navigation(task: str) -> Optional[NavigationTarget]:
    """
    Parse a leading navigation clause.

    Returns:
        NavigationTarget, or None when the task does not start by naming a
        known site, a domain or a URL
    """
    match = NAVIGATION_PATTERN.match(task)
    if not match:
        return None

    url = _normalize_target(match.group("target"))
    if url is None:
        return None

    remainder = task[match.end():]
    instruction = f"{NAVIGATION_REPLACEMENT}{remainder}".strip()
    has_remaining_work = bool(LEADING_CONNECTOR.sub("", remainder).strip())
    return NavigationTarget(url=url, instruction=instruction, has_remaining_work=has_remaining_work)


async def preprocess_task(task: str, navigate: Callable[[str], Awaitable[None]]) -> PreprocessedTask:
    """
    Prepare one step instruction for the agent.

    Args:
        task: Step instruction
        navigate: Coroutine that opens a URL in the current page

    Returns:
        PreprocessedTask; never raises for pattern reasons
    """
    rewritten = rewrite_ecommerce_task(task)
    if rewritten:
        return PreprocessedTask(instruction=rewritten)

    target = parse_navigation(task)
    if target is None:
        return PreprocessedTask(instruction=task)

    logger.info(f"Direct navigation detected: {target.url}")
    try:
        await navigate(target.url)
    except Exception as e:
        logger.warning(f"Failed to navigate to {target.url}, leaving it to the agent: {e}")
        return PreprocessedTask(instruction=task)

    logger.info(f"Task modified: {target.instruction!r}")
    return PreprocessedTask(
        instruction=target.instruction,
        navigated_url=target.url,
        needs_agent=target.has_remaining_work,
    )
