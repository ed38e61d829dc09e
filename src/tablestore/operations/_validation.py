# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import Any

from ..core._error_codes import VALIDATION_NULL_ARGUMENT
from ..core.errors import ValidationError


def require(value: Any, name: str) -> None:
    """Raise :class:`ValidationError` when a required argument is ``None`` or an empty string."""
    if value is None or (isinstance(value, str) and not value):
        raise ValidationError(f"{name} must not be None or empty.", subcode=VALIDATION_NULL_ARGUMENT)
