"""
Error taxonomy for diagram generation.
"""


class SequenceDiagramError(Exception):
    """Base class of all errors raised while building a sequence diagram."""


class EntryResolutionError(SequenceDiagramError):
    """No function could be resolved at the requested location."""


class NodeAnalysisError(SequenceDiagramError):
    """Outgoing calls or source text of a single node could not be obtained."""

    def __init__(self, node_name: str, reason: str):
        super().__init__(f"Cannot analyze {node_name}: {reason}")
        self.node_name = node_name
        self.reason = reason


class MalformedSourceError(SequenceDiagramError):
    """Source text does not contain what a position or range refers to."""


class PersistenceError(SequenceDiagramError):
    """Saving or rendering a diagram failed."""


class ProviderConfigurationError(SequenceDiagramError):
    """A call hierarchy provider is unknown or cannot be configured."""
