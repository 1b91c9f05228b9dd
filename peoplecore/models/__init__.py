"""
PeopleCore HR Assistant
Database models package.

Modules:
    - hr:    employees, salaries, leave, loans, skills (the queried store)
    - audit: append-only SQL audit trail
    - ai:    LLM usage log
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
