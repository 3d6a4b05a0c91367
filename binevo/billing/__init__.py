"""Plans, permissions, donation fees, subscriptions and platform invoicing."""
