"""Base Pydantic model configuration for x402-testkit models.

All suite and result models inherit from X402BaseModel:
- Immutability (frozen=True): a loaded suite and a captured response are
  read-only for the rest of the run
- Strict validation (extra="forbid") so a typo in a suite file is a load-time
  error instead of a silently ignored key
- Flexible field naming (populate_by_name=True) for alias support
"""

from pydantic import BaseModel, ConfigDict


class X402BaseModel(BaseModel):
    """Base model for all x402-testkit value types.

    Example:
        >>> class Example(X402BaseModel):
        ...     name: str
        >>> Example(name="p").name
        'p'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
