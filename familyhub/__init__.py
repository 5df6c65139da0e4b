"""
FamilyHub - Source Package

Persistence core of a household organizer (calendar, shopping,
tasks, meal planning).

DESIGN PRINCIPLES:
1. Every collection kind is bound to exactly one store per session
2. The UI state updates first, persistence follows in the background
3. Storage failures are logged, never raised to the user
4. Local and remote stores are interchangeable
"""

__version__ = "1.0.0"
__author__ = "FamilyHub Team"
