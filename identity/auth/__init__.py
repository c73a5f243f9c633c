"""Identity workflows: registration, sessions and password recovery."""
