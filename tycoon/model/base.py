import datetime

import pydantic as p


class BaseModel(p.BaseModel):
    # dumps use aliases; logging settings rely on this for the "()" and "class" keys
    model_config = p.ConfigDict(populate_by_name=True, serialize_by_alias=True)


class WithCtime(BaseModel):
    create_time: datetime.datetime


class WithMtime(BaseModel):
    update_time: datetime.datetime


class WithTimestamps(WithCtime, WithMtime): ...
