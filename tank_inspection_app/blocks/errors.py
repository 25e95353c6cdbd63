from __future__ import annotations

from typing import Any


class InvalidInputError(ValueError):
    """Input that cannot produce a meaningful result (non-positive geometry, non-numeric text, ...).

    Distinct from legitimate zero / unbounded results, which calculators return as values.
    `field` names the offending input so the calling layer can point the user at it.
    """

    def __init__(self, field: str, message: str, value: Any = None) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.value = value
