"""Donor CRM services: tags, donations, subscribers, CSV import/export, GDPR and prospects."""
