"""
Utility functions shared by the checkers and the CLI: score arithmetic,
lenient number parsing, hostname validation, and formatted output of
investigation results.
"""

import json
import math
import re
from rich.console import Console
from rich.json import JSON
from typing import Dict, Any, Optional
import logging

# Get a logger instance for this specific file


logger = logging.getLogger(__name__)

# Initialize a single console instance, primarily for beautiful user-facing output.


console = Console()

_HOSTNAME_RE = re.compile(
    r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*\.?$"
)
_IPV4_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


def save_or_print_results(data: Dict[str, Any], output_file: Optional[str]) -> None:
    """
    Handles the output of investigation results.

    This function saves the provided data to a JSON file if an output path is given.
    Otherwise, it prints the data to the console in a beautifully formatted and
    syntax-highlighted way using the rich library.

    Args:
        data (Dict[str, Any]): The dictionary containing the results.
        output_file (str | None): The file path to save the JSON output.
                                  If None, prints to the console.
    """
    try:
        # The default=str is a safeguard for non-serializable types like datetime.

        json_str = json.dumps(data, indent=4, ensure_ascii=False, default=str)

        if output_file:
            logger.info("Saving results to %s", output_file)
            try:
                with open(output_file, "w", encoding="utf-8") as f:
                    f.write(json_str)
                console.print(
                    f"[bold green]Successfully saved to {output_file}[/bold green]"
                )
            except Exception as e:
                logger.error("Error saving file to %s: %s", output_file, e)
        else:
            console.print(JSON(json_str))
    except Exception as e:
        logger.error(
            "An unexpected error occurred while preparing results for output: %s", e
        )


def is_valid_hostname(hostname: str) -> bool:
    """Accepts domain names, single labels (e.g. 'localhost') and IPv4 literals."""
    return bool(hostname and _HOSTNAME_RE.match(hostname))


def is_ipv4_literal(hostname: str) -> bool:
    return bool(hostname and _IPV4_RE.match(hostname))


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positives, matching how the scores are published."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    """Rounds and clamps a raw score into the 0-100 range."""
    return max(0, min(100, round_half_up(value)))


def parse_leading_number(text: str) -> Optional[float]:
    """
    Parses the leading numeric part of a free-text amount after removing
    currency symbols, thousands separators and whitespace.
    '$12,500,000' -> 12500000.0, '1.2 million' -> 1.2, 'n/a' -> None.
    """
    cleaned = re.sub(r"[$€£¥,\s]", "", text or "")
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def parse_leading_int(text: str, default: int = 0) -> int:
    """'8 years' -> 8, '' -> default."""
    match = _LEADING_INT_RE.match((text or "").strip())
    return int(match.group(0)) if match else default
