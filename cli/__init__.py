"""Subcommand parsers for the addrslips command line."""
