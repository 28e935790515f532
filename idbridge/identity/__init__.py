"""Identity reconciliation: external identities → local users and roles."""
