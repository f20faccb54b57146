from __future__ import annotations

import datetime
import decimal
import enum
import json as pyjson
import typing as t

import pydantic as p

JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]


class JSONEncoder(pyjson.JSONEncoder):
    """Encodes the values that appear in log extras.

    Timestamps become ISO 8601 strings, token means and interest amounts keep
    their exact decimal text, and enums are written by value.
    """

    def default(self, o: t.Any) -> JSONValue:
        match o:
            case p.BaseModel():
                return o.model_dump(mode="json")
            case datetime.datetime() | datetime.date():
                return o.isoformat()
            case datetime.timedelta():
                return o.total_seconds()
            case decimal.Decimal():
                return str(o)
            case enum.Enum():
                return o.value
            case set() | frozenset():
                return sorted(o, key=str)
        return super().default(o)
