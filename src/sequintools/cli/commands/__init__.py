"""sequintools subcommands."""
