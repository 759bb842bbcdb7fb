"""
Event seating engine: table capacity, guest assignment and live occupancy stats
"""

__version__ = "1.0.0"
