"""Email, SMS, in-app notifications, campaign delivery and automations."""
