from __future__ import annotations

from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def exponential_smooth(previous: ArrayLike, raw: ArrayLike, factor: float) -> ArrayLike:
    """First-order low-pass step: ``previous * factor + raw * (1 - factor)``.

    ``factor`` is the weight kept from the previous value, so 0 passes ``raw``
    straight through and values close to 1 respond slowly. The result always
    lies between ``previous`` and ``raw``.
    """
    if not 0.0 <= factor < 1.0:
        raise ValueError(f"factor must be in [0, 1), got {factor!r}")
    return previous * factor + raw * (1.0 - factor)
