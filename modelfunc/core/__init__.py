"""Store and cache handles, configuration, logging and errors."""
