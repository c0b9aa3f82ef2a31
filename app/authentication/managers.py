"""
Custom user manager for email-based authentication.

Security:
    - Passwords are automatically hashed via set_password()
    - Email addresses are normalized (lowercase domain)
"""

from django.contrib.auth.models import BaseUserManager
from django.db.models import Q


class UserManager(BaseUserManager):
    """
    Custom manager for User model with email-based authentication.

    Usage:
        tenant = User.objects.create_user(email="tenant@example.com")
        admin = User.objects.create_superuser(
            email="admin@example.com",
            password="adminpassword",
        )
    """

    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular user with the given email and password.

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError("The Email field must be set")

        email = self.normalize_email(email)
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and save a superuser with the admin role."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "admin")

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **extra_fields)

    def admins(self):
        """Active users who receive operational escalations."""
        return self.filter(Q(role="admin") | Q(is_staff=True), is_active=True)
