from __future__ import annotations

import datetime
import enum
import pathlib
import typing as t

import click
import pydantic as p
from click import *  # noqa: F401, F403 # pyright: ignore [reportWildcardImportFromLibrary]

# Thin wrapper around Click: everything from `click` is re-exported, plus the
# parameter types the tycoon commands need.


class EnumType(click.ParamType):
    """specify click params to be members of an enum"""

    def __init__(self, enum: t.Type[enum.Enum]):
        self.enum = enum
        self.name = self.enum_name

    @property
    def values(self) -> list[str]:
        return [e.value for e in self.enum]

    @property
    def enum_name(self) -> str:
        return self.enum.__name__

    def convert(
        self, value: str | enum.Enum | None, param: click.Parameter | None, ctx: click.Context | None
    ) -> enum.Enum | None:
        if value is None or isinstance(value, self.enum):
            return value

        try:
            return self.enum(value)
        except ValueError:
            self.fail(f"valid {self.enum_name} values {self.values}")

    def __repr__(self) -> str:
        return self.enum_name


class KeyParamType(click.ParamType):
    """A prefixed entity key, e.g. `assignment$...`"""

    def __init__(self, key_type: type[str]):
        self.key_type = key_type
        self.name = key_type.__name__

    def convert(self, value: t.Any, param: click.Parameter | None, ctx: click.Context | None) -> t.Any:
        if isinstance(value, self.key_type):
            return value
        try:
            return self.key_type(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


class DateTimeParamType(click.ParamType):
    """An ISO-8601 timestamp; naive values are taken to be UTC."""

    name = "datetime"

    def convert(
        self, value: t.Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> datetime.datetime | None:
        if value is None or isinstance(value, datetime.datetime):
            return value
        try:
            dt = datetime.datetime.fromisoformat(value)
        except ValueError:
            self.fail(f"{value!r} is not an ISO-8601 timestamp", param, ctx)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.UTC)
        return dt


class URIParamType(click.ParamType):
    name = "uri"

    def __init__(self, dir_ok: bool = False):
        self.dir_ok = dir_ok

    def convert(self, value: t.Any, param: click.Parameter | None, ctx: click.Context | None) -> p.AnyUrl:
        if isinstance(value, p.AnyUrl):
            return value
        if isinstance(value, pathlib.Path) or "://" not in str(value):
            path = pathlib.Path(value).resolve()
            if path.is_dir() and not self.dir_ok:
                self.fail(f"{path} is a directory", param, ctx)
            return p.FileUrl(path.as_uri())
        try:
            return p.AnyUrl(str(value))
        except p.ValidationError:
            self.fail(f"{value!r} is not a valid URI", param, ctx)
