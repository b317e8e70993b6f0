"""
Scoring.

Components:
- display.py: focus/preview ranking for today's tasks
- wellness.py: 0-100 wellness score and its label
"""
