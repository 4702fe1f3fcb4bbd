"""
Frame dataset logic.

Contains the domain models, the uniform frame sampler and the dataset
builder. Only the models are re-exported here; import the sampler and
builder from their modules.
"""

from .models import FrameDescriptor, SampledFrame

__all__ = [
    "FrameDescriptor",
    "SampledFrame",
]
