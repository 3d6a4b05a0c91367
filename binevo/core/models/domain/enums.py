"""
Domain enumerations.

Entities store the plain string values; these enums are used for
validation in I/O schemas and for comparisons in services.
"""

from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    NGO_ADMIN = "NGO_ADMIN"
    STAFF = "STAFF"
    VIEWER = "VIEWER"


class SubscriptionPlan(str, Enum):
    BASIC = "BASIC"
    PRO = "PRO"
    ELITE = "ELITE"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class ConnectStatus(str, Enum):
    NOT_CREATED = "not_created"
    PENDING = "pending"
    RESTRICTED = "restricted"
    ACTIVE = "active"


class Channel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    BOTH = "BOTH"


class DonorStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UNSUBSCRIBED = "UNSUBSCRIBED"
    DELETED = "DELETED"


class DonorType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    COMPANY = "COMPANY"


class DonationStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class DonationSource(str, Enum):
    STRIPE_CONNECT = "stripe_connect"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    MANUAL = "manual"
    MANUAL_PLEDGE = "manual_pledge"


class PledgeStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class PledgeMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    REVOLUT = "revolut"


class CampaignType(str, Enum):
    THANK_YOU = "THANK_YOU"
    UPDATE = "UPDATE"
    EMERGENCY_APPEAL = "EMERGENCY_APPEAL"
    NEWSLETTER = "NEWSLETTER"
    REACTIVATION = "REACTIVATION"
    CORPORATE_OUTREACH = "CORPORATE_OUTREACH"
    CUSTOM = "CUSTOM"


class CampaignStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    SENDING = "SENDING"
    SENT = "SENT"
    CANCELLED = "CANCELLED"


class AutomationTrigger(str, Enum):
    NEW_DONATION = "NEW_DONATION"
    CAMPAIGN_GOAL_REACHED = "CAMPAIGN_GOAL_REACHED"
    NO_DONATION_PERIOD = "NO_DONATION_PERIOD"
    NEW_SUBSCRIBER = "NEW_SUBSCRIBER"
    CAMPAIGN_ENDED = "CAMPAIGN_ENDED"
    LOW_PERFORMANCE = "LOW_PERFORMANCE"
    MANUAL = "MANUAL"


class AutomationAction(str, Enum):
    SEND_EMAIL = "SEND_EMAIL"
    SEND_SMS = "SEND_SMS"
    ADD_TAG = "ADD_TAG"
    REMOVE_TAG = "REMOVE_TAG"
    NOTIFY_ADMIN = "NOTIFY_ADMIN"
    AI_SUGGESTION = "AI_SUGGESTION"
    WAIT = "WAIT"
    CONDITION = "CONDITION"


class DeliveryStatus(str, Enum):
    """Per-recipient delivery state reported by the email and SMS providers."""

    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    BOUNCED = "BOUNCED"
    FAILED = "FAILED"
    COMPLAINED = "COMPLAINED"
    UNSUBSCRIBED = "UNSUBSCRIBED"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class NotificationType(str, Enum):
    DONATION_RECEIVED = "DONATION_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CONNECT_ACTIVE = "CONNECT_ACTIVE"
    CONNECT_RESTRICTED = "CONNECT_RESTRICTED"
    SUBSCRIPTION_RENEWED = "SUBSCRIPTION_RENEWED"
    SUBSCRIPTION_UPGRADED = "SUBSCRIPTION_UPGRADED"
    SUBSCRIPTION_DOWNGRADED = "SUBSCRIPTION_DOWNGRADED"
    SUBSCRIPTION_EXPIRING = "SUBSCRIPTION_EXPIRING"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    INVOICE_OVERDUE = "INVOICE_OVERDUE"
    PLEDGE_RECEIVED = "PLEDGE_RECEIVED"
    CAMPAIGN_SENT = "CAMPAIGN_SENT"
    AUTOMATION = "AUTOMATION"
    SYSTEM = "SYSTEM"
