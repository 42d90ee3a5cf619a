"""
Core modules for Dad Joke.

This package contains prompt building, the fallback joke bank and
request handling.
"""
