"""Core building blocks shared by all pbx-authz features."""
