"""Base model configuration for all data structures."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with standard configuration.

    Instances are frozen so they can be used as mapping keys.
    """

    model_config = ConfigDict(frozen=True)
