"""Domain-agnostic verifiers that run alongside every domain adapter."""
