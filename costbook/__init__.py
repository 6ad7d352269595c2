"""Costbook - weekly cost-of-sales ledger for small food businesses."""

from costbook.utils.constants import APP_VERSION

__version__ = APP_VERSION
