"""
CoinView: crypto market dashboard core.
Filtered asset views, rankings, live change tracking and portfolio simulations.
"""
__version__ = "0.1.0"
