"""ClimateSync: G36-style HVAC decisions and device-state synchronization."""

__version__ = "0.1.0"
