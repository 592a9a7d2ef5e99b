"""
Custom user manager for email-based authentication.

This module provides the UserManager class that handles user creation
with email as the primary identifier and assigns every new user a unique
referral code.

Related files:
    - models.py: User model that uses this manager

Security:
    - Passwords are automatically hashed via set_password()
    - Email addresses are normalized (lowercase domain)
"""

from django.contrib.auth.models import BaseUserManager

from core.helpers import generate_referral_code


class UserManager(BaseUserManager):
    """
    Custom manager for User model with email-based authentication.

    Usage:
        client = User.objects.create_user(
            email="client@example.com",
            password="securepassword",
        )

        vendor = User.objects.create_user(
            email="vendor@example.com",
            password="securepassword",
            role=User.Role.VENDOR,
        )
    """

    def _unique_referral_code(self):
        """Draw referral codes until one is not taken."""
        while True:
            code = generate_referral_code()
            if not self.filter(referral_code=code).exists():
                return code

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a user with the given email and password.

        Args:
            email: User's email address (required)
            password: User's password (unusable password when omitted)
            **extra_fields: Additional fields to set on the user

        Returns:
            User: The created user instance

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError("The Email field must be set")

        email = self.normalize_email(email)

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        if not extra_fields.get("referral_code"):
            extra_fields["referral_code"] = self._unique_referral_code()

        user = self.model(email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a platform administrator.

        Superusers get the admin marketplace role so they can resolve
        disputes and process withdrawals.

        Raises:
            ValueError: If is_staff or is_superuser is not True
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "admin")

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **extra_fields)
