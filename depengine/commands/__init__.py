"""Click subcommands for depengine."""
