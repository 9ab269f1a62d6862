"""
Formatters - pure helpers used by sinks to render log entries

Provides:
- Timestamp, label and color transformers attached to every sink
- Entry rendering for console and file sinks
- Three line banner rendering with optional click styling
"""

import json
import re
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import click

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"
LABEL_WIDTH = 9

ENTRY_TEMPLATE = "[{timestamp}] {label} : {body}"
ORIGIN_ENTRY_TEMPLATE = "[{timestamp}] {label} -> [{origin}] : {body}"

_LABELS = {
    "emerg": "emergency",
    "alert": "alert",
    "crit": "critical",
    "error": "error",
    "warning": "warning",
    "notice": "notice",
    "info": "info",
    "debug": "debug",
}

_COLORS = {
    "emerg": "magenta",
    "alert": "magenta",
    "crit": "red",
    "error": "red",
    "warning": "yellow",
    "notice": "cyan",
    "info": "green",
    "debug": "blue",
}

DEFAULT_COLOR = "white"

BASE_COLORS = ("black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")
SUPPORTED_COLORS = frozenset(BASE_COLORS + tuple(f"bright_{color}" for color in BASE_COLORS) + ("reset",))

BANNER_PADDING = 20


@dataclass
class LogEntry:
    """Record handed to sinks by the dispatcher.

    level is the dispatch key ("warning", "crit", ...), not the public name.
    """

    level: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    origin: Optional[str] = None
    created: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class BannerStyle:
    foreground: str = "white"
    background: str = "bgBlack"
    top: str = "-"
    bottom: str = "-"
    left: str = "|"
    right: str = "|"


BANNER_FIELDS = frozenset(item.name for item in fields(BannerStyle))
BANNER_DELIMITERS = ("top", "bottom", "left", "right")


def timestamp_formatter(now: Optional[datetime] = None) -> str:
    """
    Return the given (or current) time in the fixed log pattern.

    The pattern is numeric ("20/01/2024 14:05:09"), so LC_ALL, LC_MESSAGES
    and LANG do not change the output.
    """
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def label_formatter(key):
    """
    Map a dispatch key to its fixed-width label.

    Args:
        key: dispatch key such as "info" or "crit"

    Returns:
        Upper-cased label padded to LABEL_WIDTH, or the input unchanged
        when the key is unknown

    Example:
        label_formatter("crit")  # "CRITICAL "
    """
    if key not in _LABELS:
        return key
    return _LABELS[key].upper().ljust(LABEL_WIDTH)


def colorize_formatter(key) -> str:
    """Map a dispatch key to a click color name"""
    return _COLORS.get(key, DEFAULT_COLOR)


def format_template(template: str, values: Dict[str, Any]) -> str:
    """
    Fill a "{name}" template.

    Args:
        template: template using str.format named fields
        values: field values, None is rendered as an empty string

    Returns:
        Filled template without trailing whitespace
    """
    return template.format(**{key: "" if value is None else value for key, value in values.items()}).rstrip()


def _serialize_metadata(metadata: Optional[Dict[str, Any]]) -> str:
    if not metadata:
        return ""
    return json.dumps(metadata, default=str)


def format_entry(
    entry: LogEntry,
    timestamp: Optional[Callable[[], str]] = timestamp_formatter,
    label: Optional[Callable[[str], str]] = label_formatter,
    colorize: Optional[Callable[[str], str]] = None,
) -> str:
    """
    Render an entry as a single text line.

    Args:
        entry: entry to render
        timestamp: transformer returning the timestamp text
        label: transformer mapping the dispatch key to a label
        colorize: transformer mapping the dispatch key to a color; when set
                  the label is styled with click

    Returns:
        "[timestamp] LABEL -> [origin] : message {metadata}"
    """
    level_text = label(entry.level) if label else entry.level
    if colorize:
        level_text = click.style(level_text, fg=colorize(entry.level))

    template = ORIGIN_ENTRY_TEMPLATE if entry.origin else ENTRY_TEMPLATE
    body = " ".join(part for part in (entry.message, _serialize_metadata(entry.metadata)) if part)
    return format_template(
        template,
        {
            "timestamp": timestamp() if timestamp else entry.created.isoformat(),
            "label": level_text,
            "origin": entry.origin,
            "body": body,
        },
    )


def format_raw(entry: LogEntry) -> str:
    """Render only the message, used for access log lines"""
    return entry.message.rstrip("\r\n")


def normalize_background(background: str) -> str:
    """Prefix a background color with "bg" and capitalize it ("red" -> "bgRed")"""
    if background.startswith("bg"):
        return background
    return "bg" + background[:1].upper() + background[1:]


def _background_to_color(background: str) -> str:
    # bgBrightRed -> bright_red
    name = background[2:]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def render_banner(
    message,
    style: Union[BannerStyle, Mapping[str, str], None] = None,
    warn: Optional[Callable[[str], Any]] = None,
) -> List[str]:
    """
    Build a three line banner: top rule, delimited message, bottom rule.

    The message is upper-cased and padded by BANNER_PADDING columns on each
    side. When the style colors are not supported the banner is returned
    unstyled and warn is called with the reason.

    Args:
        message: banner text
        style: BannerStyle or mapping of its fields, defaults to white on black
        warn: callable receiving a warning message

    Returns:
        List of the three banner lines

    Example:
        render_banner("ready", BannerStyle(foreground="red", background="white"))
    """
    warn = warn or (lambda message: None)
    defaults = BannerStyle()

    if isinstance(style, Mapping):
        style = BannerStyle(**{key: value for key, value in style.items() if key in BANNER_FIELDS})
    elif style is not None and not isinstance(style, BannerStyle):
        warn(f"Banner style {style!r} is not supported, using the default style.")
        style = None
    style = style or defaults

    invalid = sorted(name for name in BANNER_DELIMITERS if not isinstance(getattr(style, name), str))
    if invalid:
        warn(f"Banner {', '.join(invalid)} must be text, using the default characters.")
        style = replace(style, **{name: getattr(defaults, name) for name in invalid})

    text = str(message).upper()
    inner = " " * (BANNER_PADDING - 1)
    middle = f"{style.left}{inner}{text}{inner}{style.right}"
    width = len(middle)
    lines = [style.top * width, middle, style.bottom * width]

    foreground = style.foreground
    background = style.background
    bg_color = None
    if isinstance(background, str):
        background = normalize_background(background)
        bg_color = _background_to_color(background)

    if not isinstance(foreground, str) or foreground not in SUPPORTED_COLORS or bg_color not in SUPPORTED_COLORS:
        warn(f"Banner style {foreground}/{background} is not supported, using plain output.")
        return lines

    return [click.style(line, fg=foreground, bg=bg_color) for line in lines]
