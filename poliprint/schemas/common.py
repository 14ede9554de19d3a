# poliprint/schemas/common.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Storefront payloads travel camelCase but are addressed snake_case in
    Python. Either spelling is accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """
    Body of every non-2xx storefront response.
    """

    success: bool = False
    error: str
    message: str | None = None
