"""Client id allocation with recycling of freed numbers."""
import re
from typing import Iterable

from golden_credit.core.errors import ClientIdSpaceExhausted


def allocate_client_id(existing_ids: Iterable[str], prefix: str = "G", width: int = 3) -> str:
    """
    Return the next client id, reusing the smallest free number.

    Rules:
    - Only ids matching ``<prefix><width digits>`` take part in numbering;
      anything else is ignored
    - The result is ``prefix`` + the smallest positive integer not in use,
      zero-padded to ``width``
    - Pure: the same input set always yields the same id

    Raises ClientIdSpaceExhausted when 1..10**width - 1 are all taken.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d{{{width}}})$")
    used = set()
    for candidate in existing_ids:
        match = pattern.match(candidate)
        if match:
            used.add(int(match.group(1)))

    limit = 10 ** width - 1
    next_number = 1
    for number in sorted(used):
        if number == next_number:
            next_number += 1
        elif number > next_number:
            break

    if next_number > limit:
        raise ClientIdSpaceExhausted(
            f"No free client id left for prefix '{prefix}' at width {width}"
        )
    return f"{prefix}{next_number:0{width}d}"
