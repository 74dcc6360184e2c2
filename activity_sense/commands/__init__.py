"""
Command implementations for the activity-sense CLI
"""
