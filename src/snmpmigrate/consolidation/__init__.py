"""SNMP interface consolidation: fold per-item SNMP settings into ``interface_snmp``."""
