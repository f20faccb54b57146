import logging
import string
import textwrap
import typing as t

import pygments
from pygments.formatters import Terminal256Formatter
from pygments.lexers.data import JsonLexer  # pyright: ignore [reportMissingTypeStubs]
from pygments.style import Style

from tycoon.lib.json import JSONEncoder, JSONValue

from .style import LogStyle

ReservedKeys = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "color_message",
    "log_color",
    "reset",
}


class _ReprEncoder(JSONEncoder):
    def default(self, o: t.Any) -> JSONValue:
        try:
            return super().default(o)
        except TypeError:
            return repr(o)


class ExtraFormatter(logging.Formatter):
    """Append the record's `extra={...}` fields to the message as JSON.

    Formatting of the message itself is delegated to `base`, so any colorlog
    formatter can be used underneath.
    """

    def __init__(
        self,
        base: type[logging.Formatter],
        format: str | None = None,
        datefmt: str | None = None,
        indent: bool = False,
        color: bool = True,
        pyg_style: type[Style] = LogStyle,
        style: t.Literal["%", "{", "$"] = "%",
        **kwargs: t.Any,
    ):
        super().__init__(format, datefmt=datefmt, style=style)
        # settings fill unset options with None; let the base formatter apply its own defaults
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        self.base = base(format, datefmt=datefmt, style=style, **kwargs)
        self.indent = indent
        self.color = color
        self.pyg_style = pyg_style

    def extra(self, record: logging.LogRecord) -> dict[str, t.Any]:
        d = record.__dict__
        return {k: d[k] for k in d.keys() - ReservedKeys}

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if "\n" in msg:
            formatted = self.base.format(record)
            idx = formatted.find(msg)
            indent = " " * len([c for c in formatted[:idx] if c in string.printable])
            line, *lines = msg.splitlines()
            body = textwrap.indent("\n".join(lines), prefix=indent)
            record.msg = f"{line}\n{body}"
            record.args = None
        message = self.base.format(record)

        extra = self.extra(record)
        if not extra:
            return message

        js = _ReprEncoder(sort_keys=True, indent=(4 if self.indent else None)).encode(extra)
        if self.color:
            js = pygments.highlight(js, JsonLexer(), Terminal256Formatter(style=self.pyg_style))
        return message + " " + js.strip()
