"""
Exception types raised at the alerter's I/O edges.
"""


class ConfigError(Exception):
    """A required setting is missing or unparsable. Fatal at startup."""


class LookupFailed(Exception):
    """The remote detail lookup answered with a non-success status."""


class DeliveryFailed(Exception):
    """A notification sink rejected an alert."""
