from .enums import (
    AutomationAction,
    AutomationTrigger,
    CampaignStatus,
    CampaignType,
    Channel,
    ConnectStatus,
    DeliveryStatus,
    DonationSource,
    DonationStatus,
    DonorStatus,
    DonorType,
    InvoiceStatus,
    NotificationType,
    PledgeMethod,
    PledgeStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    UserRole,
)

__all__ = [
    "AutomationAction",
    "AutomationTrigger",
    "CampaignStatus",
    "CampaignType",
    "Channel",
    "ConnectStatus",
    "DeliveryStatus",
    "DonationSource",
    "DonationStatus",
    "DonorStatus",
    "DonorType",
    "InvoiceStatus",
    "NotificationType",
    "PledgeMethod",
    "PledgeStatus",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "UserRole",
]
