"""
Authentication application.

Provides the email-based User model. Every user carries a role
(landlord, tenant or admin); landlords and tenants are the parties of a
contract, admins receive payout escalations.

Usage:
    from authentication.models import User, UserRole

    admins = User.objects.admins()
"""
