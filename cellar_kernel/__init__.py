"""
Cellar Kernel - fermentation lot & tank allocation engine

Decides how in-process batches are assigned to fermentation vessels:
- Scenario classification (simple, split, blend)
- Vessel availability, capacity and occupancy validation
- Atomic lot / assignment / transfer lineage writes
- Structured, machine-readable failure reporting
"""

__version__ = "0.1.0"
