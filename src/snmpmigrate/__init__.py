"""snmpmigrate: consolidate per-item SNMP settings into per-interface configuration."""

__version__ = "0.1.0"
