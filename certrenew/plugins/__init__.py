"""certrenew plugins."""
