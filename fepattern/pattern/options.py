"""Option handling for the pattern builders.

Builders accept an ``options`` dict in the same spirit as solver options:

    - 'growth_factor': Triplet buffer growth factor on overflow. Defaults to 1.5.
    - 'condensation_capacity_factor': Condensation buffer capacity per
      constraint slot. Defaults to 2.
    - 'dtype': Dtype of the placeholder values of the skeleton. Defaults to
      'float64'.
"""

import numpy as onp
from typing import Any, Dict, Optional

from fepattern.errors import ConfigurationError

DEFAULT_PATTERN_OPTIONS: Dict[str, Any] = {
    'growth_factor': 1.5,
    'condensation_capacity_factor': 2,
    'dtype': 'float64',
}


def resolve_pattern_options(options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge user options with the defaults and validate them.

    Args:
        options (Optional[Dict[str, Any]], optional): User options. Defaults to None.

    Returns:
        Dict[str, Any]: Complete option dict.

    Raises:
        ConfigurationError: If a key is unknown or a value is invalid.

    Example:
        >>> resolve_pattern_options({'growth_factor': 2.0})['growth_factor']
        2.0
    """
    resolved = dict(DEFAULT_PATTERN_OPTIONS)
    if options:
        unknown = set(options) - set(DEFAULT_PATTERN_OPTIONS)
        if unknown:
            raise ConfigurationError(
                f"Unknown pattern options {sorted(unknown)}, "
                f"supported: {sorted(DEFAULT_PATTERN_OPTIONS)}"
            )
        resolved.update(options)

    growth = resolved['growth_factor']
    if isinstance(growth, bool) or not isinstance(growth, (int, float)) or growth <= 1:
        raise ConfigurationError(
            f"growth_factor must be greater than 1, got {resolved['growth_factor']}"
        )
    factor = resolved['condensation_capacity_factor']
    if isinstance(factor, bool) or not isinstance(factor, int) or factor < 1:
        raise ConfigurationError(
            f"condensation_capacity_factor must be a positive integer, got {factor}"
        )
    try:
        resolved['dtype'] = onp.dtype(resolved['dtype'])
    except TypeError as e:
        raise ConfigurationError(f"Invalid dtype {resolved['dtype']!r}") from e
    return resolved
