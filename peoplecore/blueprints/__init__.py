"""
PeopleCore HR Assistant
Blueprint registry.
"""
