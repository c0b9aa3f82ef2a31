"""
Tests for the authentication app.

Modules:
- test_managers.py: UserManager creation rules and the admins() queryset
- factories.py: landlord, tenant and admin user factories
"""
