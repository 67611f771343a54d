class SimulationError(Exception):
    """Base exception for all simulation errors."""
    pass


class DuplicateNodeError(SimulationError):
    """Raised when a node is added under an id that is already registered."""

    def __init__(self, node_id):
        super().__init__(f"Node {node_id} already exists")
        self.node_id = node_id
