"""
Registration core services.

eligibility and lifecycle are pure; capacity and registration_service touch
the database.
"""
