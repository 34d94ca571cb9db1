"""Shared request model base for the camelCase JSON the web client sends."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts ``planId`` as well as ``plan_id``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
