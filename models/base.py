"""
Base class for ready-made dynamical systems.

Provides a standard way for model definitions to produce system
descriptors that the solver engine and the simulation controller
consume.
"""

from abc import ABC, abstractmethod

from core.descriptor import SystemDescriptor
from .validation import validate


class SystemModel(ABC):
    """
    Abstract base class for dynamical system definitions.

    Subclasses hold their settings as constructor arguments and
    implement build(), which returns the raw descriptor. The class-level
    default_descriptor() is used as the descriptor's self_constructor,
    so a reconfigure request rebuilds the model from its defaults.
    """

    @abstractmethod
    def build(self) -> SystemDescriptor:
        """
        Build the raw system descriptor.

        Returns:
            SystemDescriptor (not yet validated)
        """
        pass

    def descriptor(self) -> SystemDescriptor:
        """Build and validate the descriptor."""
        return validate(self.build())

    @classmethod
    def default_descriptor(cls) -> SystemDescriptor:
        """Fresh descriptor built from the default settings."""
        return cls().build()

    def __repr__(self) -> str:
        settings = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{self.__class__.__name__}({settings})"
