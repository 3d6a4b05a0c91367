"""Stripe integration: REST client, key provider, Connect accounts and webhooks."""
