"""
Dad Joke - serverless joke endpoint with a fallback joke bank and usage stats.
"""

__version__ = "0.1.0"
