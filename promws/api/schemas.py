#!/usr/bin/env python3
"""
prom-ws Control Message Schemas - Pydantic Models for Inbound Messages
"""

import json
import logging
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger("promws.server")


# JSON numbers: ints and floats, never booleans or numeric strings
Number = Union[StrictInt, StrictFloat]

# Client ids may be strings or integers; integers are used in their text form
ClientId = Union[StrictStr, StrictInt]


class StartRequest(BaseModel):
    type: Literal["start"]
    id: Optional[ClientId] = None
    query: str
    metrics: Optional[List[str]] = None
    step: Optional[Number] = None
    history: Optional[Number] = None

    @field_validator("id")
    @classmethod
    def id_as_text(cls, v):
        return None if v is None else str(v)


class StopRequest(BaseModel):
    type: Literal["stop"]
    id: ClientId

    @field_validator("id")
    @classmethod
    def id_as_text(cls, v):
        return str(v)


class ResetRequest(BaseModel):
    type: Literal["reset"]


ControlMessage = Annotated[
    Union[StartRequest, StopRequest, ResetRequest],
    Field(discriminator="type"),
]

_control_adapter = TypeAdapter(ControlMessage)


def parse_control_message(raw: Union[str, bytes]) -> Optional[Union[StartRequest, StopRequest, ResetRequest]]:
    """
    Parse one inbound frame into a control message.

    Returns:
        The parsed request, or None for malformed JSON or an unrecognized shape
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.debug("ignoring non-JSON control message: %s", e)
        return None

    if not isinstance(data, dict):
        logger.debug("ignoring non-object control message: %r", data)
        return None

    try:
        return _control_adapter.validate_python(data)
    except ValidationError as e:
        logger.debug("ignoring unrecognized control message: %s", e.errors())
        return None
