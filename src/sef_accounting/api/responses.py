"""JSON rendering that keeps monetary amounts exact.

Amounts leave the API as JSON numbers with exactly two fraction digits
(``1200.00``). Pydantic writes Decimal as a string in JSON mode and the
standard encoder only knows floats, so responses are dumped in python mode
and written with simplejson's Decimal support.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

import simplejson
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class DecimalJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return simplejson.dumps(
            jsonable_encoder(content, custom_encoder={Decimal: lambda d: d}),
            use_decimal=True,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode("utf-8")


def render(
    model: BaseModel | Sequence[BaseModel], status_code: int = 200
) -> DecimalJSONResponse:
    """Wrap a response model (or a list of them) without stringifying Decimals."""
    if isinstance(model, BaseModel):
        content = model.model_dump()
    else:
        content = [item.model_dump() for item in model]
    return DecimalJSONResponse(content, status_code=status_code)
