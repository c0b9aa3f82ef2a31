"""
User model for the marketplace.

Users are identified by email. Every user has a marketplace role:
landlords own contracts and receive payouts, tenants pay payment
orders, admins resolve escalations (failed payouts, payments deleted
after disbursement).

Usage:
    from authentication.models import User, UserRole

    landlord = User.objects.create_user(
        email="owner@example.com",
        password="securepassword",
        role=UserRole.LANDLORD,
    )

    admins = User.objects.admins()
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserRole(models.TextChoices):
    """Marketplace roles."""

    LANDLORD = "landlord", "Landlord"
    TENANT = "tenant", "Tenant"
    ADMIN = "admin", "Admin"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Display name used in notifications
        role: Marketplace role (landlord, tenant, admin)
        payment_customer_id: Customer id at the payment gateway (tenants)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    full_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Display name used in notifications",
    )

    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.TENANT,
        db_index=True,
        help_text="Marketplace role",
    )

    payment_customer_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Customer id registered at the payment gateway (cus_xxx)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email.split("@")[0]

    @property
    def is_admin(self) -> bool:
        """Admins are users with the admin role or staff access."""
        return self.role == UserRole.ADMIN or self.is_staff
