"""Binevo: donor CRM, campaigns, donations and billing for Romanian NGOs."""

__version__ = "0.1.0"
