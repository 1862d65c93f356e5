from .server import SimulatedGazepointServer

__all__ = ["SimulatedGazepointServer"]
