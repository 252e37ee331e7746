"""Feature packages of the pbx-authz pipeline.

- identity/: credential validation and principal resolution
- roles/: role hierarchy expansion and permission checks
- policies/: attribute-based policy evaluation
- rate_limit/: in-memory request rate limiting
- audit/: asynchronous audit event delivery
- guards/: request pipeline orchestration
"""
