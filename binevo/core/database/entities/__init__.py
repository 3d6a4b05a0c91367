"""
Database entities for Binevo.

Importing this package registers every table with ``Base.metadata``.
"""

from .audit_logs import AuditLog
from .automations import Automation, AutomationExecution, AutomationStep
from .campaigns import Campaign, Message, MessageRecipient
from .donations import Donation
from .donors import ConsentRecord, Donor, DonorTagAssignment, Tag
from .invoices import Invoice
from .ngos import Ngo
from .notifications import Notification
from .platform_settings import PLATFORM_SETTINGS_ID, PlatformSettings
from .pledges import DonationPledge
from .prospects import LinkedInProspect
from .tax_forms import Formular230
from .users import ApiToken, PasswordResetToken, User

__all__ = [
    "ApiToken",
    "AuditLog",
    "Automation",
    "AutomationExecution",
    "AutomationStep",
    "Campaign",
    "ConsentRecord",
    "Donation",
    "DonationPledge",
    "Donor",
    "DonorTagAssignment",
    "Formular230",
    "Invoice",
    "LinkedInProspect",
    "Message",
    "MessageRecipient",
    "Ngo",
    "Notification",
    "PLATFORM_SETTINGS_ID",
    "PasswordResetToken",
    "PlatformSettings",
    "Tag",
    "User",
]
