"""
CoinView domain services.
"""
