"""
shqip-guessr: street-image guessing game for Kosovo and Albania.

The server side lives in `shqip_guessr.src` (Quart app, round acquisition),
external API clients in `shqip_guessr.providers`.
"""

__version__ = "0.1.0"
