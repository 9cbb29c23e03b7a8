"""
Binance Flow - multiplexed Binance market-data stream ingestion.

Connects to one combined-stream WebSocket, routes each frame to the
handler registered for its stream type, and persists candles, trades,
quotes and order-book snapshots under bounded retention.
"""

__version__ = "0.1.0"
