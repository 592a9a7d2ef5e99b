"""
Accounts models.

This module defines the marketplace principals:
- User: Custom user model with email login, marketplace role and wallet
- VendorProfile: Vendor business data used by booking creation and pricing

Related files:
    - managers.py: Custom user manager (referral code assignment)
    - payments/ledger/services.py: The only writer of User.wallet_balance

Security:
    - User passwords and withdrawal PINs are hashed with Django's hashers
    - The raw withdrawal PIN is never stored
"""

from django.contrib.auth.hashers import check_password, make_password
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from accounts.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        first_name / last_name / phone: Contact details
        role: Marketplace role (client, vendor, admin)
        wallet_balance: Spendable balance in whole currency units
        referral_code: Unique code other users apply when signing up
        referred_by: User whose referral code this user applied
        withdrawal_pin: Hashed PIN required for withdrawals

    Usage:
        vendor = User.objects.create_user(
            email="vendor@example.com",
            password="securepassword",
            role=User.Role.VENDOR,
        )
    """

    class Role(models.TextChoices):
        CLIENT = "client", "Client"
        VENDOR = "vendor", "Vendor"
        ADMIN = "admin", "Admin"

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    first_name = models.CharField(
        max_length=50,
        blank=True,
        help_text="User's first name",
    )
    last_name = models.CharField(
        max_length=50,
        blank=True,
        help_text="User's last name",
    )
    phone = models.CharField(
        max_length=20,
        blank=True,
        help_text="Contact phone number",
    )

    role = models.CharField(
        max_length=10,
        choices=Role.choices,
        default=Role.CLIENT,
        db_index=True,
        help_text="Marketplace role",
    )

    # ==========================================================================
    # Wallet
    # ==========================================================================

    wallet_balance = models.BigIntegerField(
        default=0,
        help_text="Wallet balance in whole currency units (mutated by WalletLedger only)",
    )
    withdrawal_pin = models.CharField(
        max_length=128,
        blank=True,
        help_text="Hashed withdrawal PIN (empty until set)",
    )

    # ==========================================================================
    # Referrals
    # ==========================================================================

    referral_code = models.CharField(
        max_length=16,
        unique=True,
        help_text="Code other users apply to be referred by this user",
    )
    referred_by = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referred_users",
        help_text="User whose referral code this user applied",
    )

    # Account status flags
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
        constraints = [
            models.CheckConstraint(
                condition=models.Q(wallet_balance__gte=0),
                name="user_wallet_balance_non_negative",
            ),
        ]

    def __str__(self):
        return self.email

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        return self.first_name or self.email.split("@")[0]

    @property
    def is_client(self) -> bool:
        return self.role == self.Role.CLIENT

    @property
    def is_vendor(self) -> bool:
        return self.role == self.Role.VENDOR

    @property
    def is_platform_admin(self) -> bool:
        """Admin role or Django superuser."""
        return self.role == self.Role.ADMIN or self.is_superuser

    @property
    def has_withdrawal_pin(self) -> bool:
        return bool(self.withdrawal_pin)

    def set_withdrawal_pin(self, raw_pin: str) -> None:
        """Hash and store a withdrawal PIN. Caller saves the user."""
        self.withdrawal_pin = make_password(raw_pin)

    def check_withdrawal_pin(self, raw_pin: str) -> bool:
        """Return True if raw_pin matches the stored hash."""
        if not self.withdrawal_pin:
            return False
        return check_password(raw_pin, self.withdrawal_pin)


class VendorProfile(BaseModel):
    """
    Business data for a vendor account.

    Booking creation reads vendor_type and is_verified; distance pricing
    reads the stored coordinates.

    Fields:
        user: OneToOne link to the vendor User
        business_name: Public business name
        vendor_type: Where services are delivered (in shop, at home, both)
        is_verified: Unverified vendors cannot receive bookings
        latitude / longitude: Business location for distance pricing
        completed_bookings: Count of bookings completed by both parties
    """

    class VendorType(models.TextChoices):
        IN_SHOP = "in_shop", "In Shop"
        HOME_SERVICE = "home_service", "Home Service"
        BOTH = "both", "Both"

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="vendor_profile",
        help_text="Vendor account this profile belongs to",
    )
    business_name = models.CharField(
        max_length=120,
        help_text="Public business name",
    )
    business_description = models.TextField(
        blank=True,
        help_text="Short description shown to clients",
    )
    vendor_type = models.CharField(
        max_length=20,
        choices=VendorType.choices,
        default=VendorType.IN_SHOP,
        help_text="Where the vendor delivers services",
    )
    is_verified = models.BooleanField(
        default=False,
        help_text="Whether the vendor has been verified by the platform",
    )
    verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the vendor was verified",
    )

    # Location
    address = models.CharField(max_length=255, blank=True, help_text="Street address")
    city = models.CharField(max_length=100, blank=True, help_text="City")
    state = models.CharField(max_length=100, blank=True, help_text="State")
    latitude = models.FloatField(
        null=True,
        blank=True,
        help_text="Business latitude in decimal degrees",
    )
    longitude = models.FloatField(
        null=True,
        blank=True,
        help_text="Business longitude in decimal degrees",
    )

    completed_bookings = models.PositiveIntegerField(
        default=0,
        help_text="Bookings completed by both parties (updated with F())",
    )

    class Meta:
        verbose_name = "vendor profile"
        verbose_name_plural = "vendor profiles"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.business_name} ({self.user.email})"

    @property
    def offers_home_service(self) -> bool:
        """True when the vendor travels to the client."""
        return self.vendor_type in (self.VendorType.HOME_SERVICE, self.VendorType.BOTH)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
