"""Framework integrations for cqrs_ddd_enrollment."""
