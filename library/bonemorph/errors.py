"""
Exception types raised by the bonemorph commands.
"""


class MissingInputError(ValueError):
    """A required input (image, ROI manager, ...) was not given."""


class InvalidArgumentError(ValueError):
    """A value violates a precondition, or the pipeline produced a degenerate result."""
