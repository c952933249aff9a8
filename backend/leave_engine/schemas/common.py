from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Hour amounts are kept as Decimal internally and emitted as JSON numbers.
Hours = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
