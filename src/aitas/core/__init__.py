"""
Core.

Components:
- ports.py: Protocols for storage and reasoning
- personality.py: personality lookup table
- preferences.py: user preferences kept in the settings table
- state.py: AppState shared by commands and connectors
"""
