"""Command line interface for SMMA (``smma --help``)."""
