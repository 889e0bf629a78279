"""LoadBoard freight marketplace backend."""
