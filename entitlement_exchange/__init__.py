"""Resource entitlement exchange engine."""
