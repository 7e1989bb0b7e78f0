from enum import Enum


class UserRole(str, Enum):
    """Platform roles."""
    TRAINEE = "TRAINEE"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


class EnrollType(str, Enum):
    RECORDED = "RECORDED"
    ONLINE = "ONLINE"


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"


class PaymentStatus(str, Enum):
    # pending -> paid, nothing else
    PENDING = "pending"
    PAID = "paid"


class PaymentProviderName(str, Enum):
    STRIPE = "stripe"
    PAYMOB = "paymob"


class Region(str, Enum):
    EG = "EG"
    INTL = "INTL"


class FileType(str, Enum):
    """Sub folders under the static uploads tree."""
    AVATARS = "avatars"
    THUMBNAILS = "thumbnails"
    BROCHURES = "brochures"
