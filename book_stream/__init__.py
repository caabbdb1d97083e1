"""
Book Stream - live bounded top-of-book for KuCoin Futures level2 streams.

Architecture:
- datafeed/: bullet bootstrap, websocket session, keepalive, wire codec, order book
- ui/: console tables (Rich) and an optional ladder TUI (Textual)
"""

__version__ = "0.1.0"
