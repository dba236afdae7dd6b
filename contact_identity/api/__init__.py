"""HTTP surface of the contact identity service."""
