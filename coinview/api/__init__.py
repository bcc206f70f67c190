"""
HTTP surface for CoinView.
"""
