"""
abrfetch: an adaptive-bitrate segment fetcher for DASH-style media streams.
"""

__version__ = "0.1.0"
