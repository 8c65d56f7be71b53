"""
Menu recommendation service.

Ranks menu items for a customer during ordering from several independent
heuristics and records how those recommendations are used.
"""
