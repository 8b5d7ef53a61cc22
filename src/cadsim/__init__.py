"""CADSIM: entity simulation core for the CAD operations map.

Subpackages:
    geo        : Web-Mercator viewport projection and fixed-pixel geometry
    simulation : dispatch events, ground/aerial motion engines, driver
    comms      : EventBus used to publish per-tick snapshots
"""

__version__ = "0.1.0"
