from .app import InspectionFormApp

__all__ = ["InspectionFormApp"]
