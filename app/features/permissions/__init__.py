"""
Permission feature module.

Per-user permission rows (page access, page actions, feature access) and
branch access, loaded into a per-user store with retrying fetches, resolved
fail-closed, and enforced by the admin-portal route guard.
"""
